"""DataAdapter: 仕様と ID リストの永続化コントラクト"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


class DataAdapterKey:
    """同期レイヤーが使用するストレージキー。"""

    RULESETS: str = "k1s0.cache"
    ID_LISTS: str = "k1s0.id_lists"

    @staticmethod
    def id_list(name: str) -> str:
        """ID リスト個別のキーを返す。"""
        return f"{DataAdapterKey.ID_LISTS}::{name}"


@dataclass(frozen=True)
class AdapterResult:
    """DataAdapter.get の戻り値。"""

    result: str | None = None
    time: int | None = None


class DataAdapter(ABC):
    """キー/値の永続化アダプター抽象基底クラス。"""

    @abstractmethod
    async def initialize(self) -> None:
        """接続などの初期化を行う。"""
        ...

    @abstractmethod
    async def shutdown(self) -> None:
        """リソースを解放する。"""
        ...

    @abstractmethod
    async def get(self, key: str) -> AdapterResult:
        """キーに対応する値を取得する。存在しなければ result は None。"""
        ...

    @abstractmethod
    async def set(self, key: str, value: str, time: int | None = None) -> None:
        """キーと値を保存する。time は取得時刻（ミリ秒）。"""
        ...


class InMemoryDataAdapter(DataAdapter):
    """テスト用インメモリ DataAdapter。"""

    def __init__(self) -> None:
        self._store: dict[str, AdapterResult] = {}
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    async def shutdown(self) -> None:
        self.initialized = False

    async def get(self, key: str) -> AdapterResult:
        return self._store.get(key, AdapterResult())

    async def set(self, key: str, value: str, time: int | None = None) -> None:
        self._store[key] = AdapterResult(result=value, time=time)

    def keys(self) -> list[str]:
        return list(self._store)
