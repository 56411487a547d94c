"""local_eval データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .dynamic_config import DynamicConfig


class Decision(StrEnum):
    """条件・ルール評価の判定。"""

    PASS = "PASS"
    FAIL = "FAIL"
    DEFER_TO_REMOTE = "DEFER_TO_REMOTE"


class SpecKind(StrEnum):
    """仕様の種別。"""

    FEATURE_GATE = "feature_gate"
    DYNAMIC_CONFIG = "dynamic_config"
    LAYER = "layer"

    @property
    def is_boolean(self) -> bool:
        return self is SpecKind.FEATURE_GATE


# 組み込みフィールド名（小文字）→ User 属性名
_BUILTIN_FIELDS: dict[str, str] = {
    "userid": "user_id",
    "user_id": "user_id",
    "email": "email",
    "ip": "ip",
    "useragent": "user_agent",
    "user_agent": "user_agent",
    "country": "country",
    "locale": "locale",
    "appversion": "app_version",
    "app_version": "app_version",
}


@dataclass(frozen=True)
class User:
    """評価対象のユーザー。"""

    user_id: str | None = None
    email: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    country: str | None = None
    locale: str | None = None
    app_version: str | None = None
    custom: dict[str, Any] = field(default_factory=dict)
    custom_ids: dict[str, str] = field(default_factory=dict)

    def get_field(self, name: str | None) -> Any:
        """組み込みフィールド、次に custom からフィールド値を取得する。"""
        if not name:
            return None
        attr = _BUILTIN_FIELDS.get(name.lower())
        if attr is not None:
            value = getattr(self, attr)
            if value is not None:
                return value
        return self.custom.get(name)

    def get_unit_id(self, id_type: str | None) -> str | None:
        """ID タイプに対応するユニット ID を返す。"""
        if id_type and id_type.lower() not in ("userid", "user_id"):
            for key, value in self.custom_ids.items():
                if key.lower() == id_type.lower():
                    return value
        return self.user_id


@dataclass(frozen=True)
class EvaluationResult:
    """仕様の評価結果。

    ゲートの場合は ``value`` が bool、Dynamic Config / レイヤーの場合は
    ``DynamicConfig`` になる。
    """

    spec_name: str
    kind: SpecKind
    value: bool | DynamicConfig
    rule_name: str

    @property
    def config(self) -> DynamicConfig:
        if isinstance(self.value, DynamicConfig):
            return self.value
        return DynamicConfig(self.spec_name, {}, self.rule_name)
