"""ID リストの差分同期"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

import structlog

from .adapter import DataAdapter, DataAdapterKey
from .exceptions import LocalEvalError, LocalEvalErrorCodes
from .metrics import id_list_bytes_fetched_total
from .network import IDListMetadata, SpecNetwork

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class IDList:
    """名前付き ID 集合と取得済みバイト位置。

    content の各行は ``+<id>``（追加）または ``-<id>``（削除）。
    """

    name: str
    url: str = ""
    file_id: str = ""
    creation_time: int = 0
    size: int = 0
    # 挿入順を保持する集合として dict を使う
    ids: dict[str, None] = field(default_factory=dict)

    def apply(self, content: str) -> None:
        """差分行を適用する。"""
        for raw in content.splitlines():
            line = raw.strip()
            if len(line) < 2:
                continue
            op, value = line[0], line[1:]
            if op == "+":
                self.ids[value] = None
            elif op == "-":
                self.ids.pop(value, None)

    def render(self) -> str:
        """永続化用のテキスト（1 ID 1 行）を返す。"""
        return "".join(f"+{value}\n" for value in self.ids)

    def members(self) -> frozenset[str]:
        return frozenset(self.ids)

    def copy(self) -> IDList:
        """ids を複製した IDList を返す。"""
        return replace(self, ids=dict(self.ids))


@dataclass
class IDListUpdate:
    """1 回の同期で得た ID リストの変更。適用するまで管理対象には反映されない。"""

    lists: dict[str, IDList]
    changed: set[str] = field(default_factory=set)
    removed: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed or self.removed)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _never_stopped() -> bool:
    return False


class IDListManager:
    """マニフェストに従って ID リストを取得・追記・ローテーションする。

    同期は ``fetch_updates`` → ``apply_updates`` → ``persist`` の 3 段階で、
    取得が完了するまで既存のリストには触れない。
    """

    def __init__(self, network: SpecNetwork | None, adapter: DataAdapter | None = None) -> None:
        self._network = network
        self._adapter = adapter
        self._lists: dict[str, IDList] = {}

    @property
    def lists(self) -> Mapping[str, IDList]:
        """現在のリストの読み取り専用コピー。"""
        return MappingProxyType({name: id_list.copy() for name, id_list in self._lists.items()})

    def memberships(self) -> dict[str, frozenset[str]]:
        """評価器に公開する不変のメンバーシップ。"""
        return {name: id_list.members() for name, id_list in self._lists.items()}

    async def load_from_adapter(self) -> bool:
        """永続化された ID リストを読み込む。読み込めたら True。"""
        if self._adapter is None:
            return False
        directory = await self._adapter.get(DataAdapterKey.ID_LISTS)
        if not directory.result:
            return False
        try:
            names = json.loads(directory.result)
        except ValueError as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.ADAPTER_ERROR,
                message=f"Invalid ID list directory in adapter: {e}",
                cause=e,
            ) from e
        if not isinstance(names, list):
            raise LocalEvalError(
                code=LocalEvalErrorCodes.ADAPTER_ERROR,
                message="ID list directory must be a JSON array",
            )
        for name in names:
            if not isinstance(name, str):
                continue
            stored = await self._adapter.get(DataAdapterKey.id_list(name))
            if stored.result is None:
                continue
            # URL と fileID は保存しないため、次回マニフェストで先頭から再取得される
            id_list = IDList(name=name)
            id_list.apply(stored.result)
            self._lists[name] = id_list
        logger.debug("ID lists loaded from adapter", count=len(self._lists))
        return bool(self._lists)

    async def sync(self) -> bool:
        """取得・適用・永続化を続けて行う。変更があれば True。"""
        update = await self.fetch_updates()
        if not update.has_changes:
            return False
        self.apply_updates(update)
        await self.persist(update)
        return True

    async def fetch_updates(self) -> IDListUpdate:
        """マニフェストと差分を取得して、適用前の変更を返す。"""
        update = IDListUpdate(lists=dict(self._lists))
        if self._network is None:
            return update
        manifest = await self._network.get_id_lists()

        for name, meta in manifest.items():
            changed, id_list = await self._sync_list(self._network, name, meta, update.lists.get(name))
            if id_list is None:
                update.lists.pop(name, None)
            else:
                update.lists[name] = id_list
            if changed:
                update.changed.add(name)

        update.removed = [name for name in update.lists if name not in manifest]
        for name in update.removed:
            del update.lists[name]
            logger.info("ID list removed", list_name=name)
        return update

    def apply_updates(self, update: IDListUpdate) -> None:
        self._lists = dict(update.lists)

    async def persist(
        self, update: IDListUpdate, is_stopped: Callable[[], bool] = _never_stopped
    ) -> None:
        """変更のあったリストとディレクトリをアダプターに保存する。

        is_stopped が True を返した時点で以降の書き込みを行わない。
        """
        if self._adapter is None or not update.has_changes:
            return
        for name in sorted(update.changed):
            if is_stopped():
                return
            id_list = update.lists.get(name)
            if id_list is not None:
                await self._persist_list(id_list)
        if is_stopped():
            return
        await self._persist_directory(list(update.lists))

    async def _sync_list(
        self,
        network: SpecNetwork,
        name: str,
        meta: IDListMetadata,
        current: IDList | None,
    ) -> tuple[bool, IDList | None]:
        """1 リスト分の差分を取得し (変更有無, 新しいリスト) を返す。

        新しいリストが None の場合はリストを破棄する。取得に失敗した場合は
        current をそのまま返す。
        """
        rotated = current is None or current.file_id != meta.file_id
        if current is not None and not rotated:
            candidate = current.copy()
        else:
            if current is not None:
                logger.info(
                    "ID list rotated",
                    list_name=name,
                    old_file_id=current.file_id,
                    new_file_id=meta.file_id,
                )
            candidate = IDList(
                name=name,
                url=meta.url,
                file_id=meta.file_id,
                creation_time=meta.creation_time,
            )

        if meta.size <= candidate.size:
            return (True, candidate) if rotated else (False, current)

        try:
            resp = await network.fetch_id_list_range(meta.url, candidate.size, meta.size)
        except LocalEvalError as e:
            logger.warning("Failed to fetch ID list", list_name=name, error=str(e))
            return False, current
        if resp.truncated:
            logger.warning(
                "Truncated ID list transfer",
                list_name=name,
                content_length=resp.content_length,
                body_length=resp.body_length,
            )
            return False, current
        if resp.text and resp.text[0] not in "+-":
            logger.warning("Corrupt ID list content, dropping list", list_name=name)
            return current is not None, None

        candidate.apply(resp.text)
        candidate.size += resp.content_length
        candidate.url = meta.url
        id_list_bytes_fetched_total.add(resp.content_length, {"list_name": name})
        return True, candidate

    async def _persist_list(self, id_list: IDList) -> None:
        if self._adapter is None:
            return
        try:
            await self._adapter.set(DataAdapterKey.id_list(id_list.name), id_list.render(), _now_ms())
        except Exception as e:
            logger.warning("Failed to persist ID list", list_name=id_list.name, error=str(e))

    async def _persist_directory(self, names: list[str]) -> None:
        if self._adapter is None:
            return
        try:
            await self._adapter.set(DataAdapterKey.ID_LISTS, json.dumps(names), _now_ms())
        except Exception as e:
            logger.warning("Failed to persist ID list directory", error=str(e))
