"""SpecSnapshot: 評価器が参照する不変の仕様セット"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from .exceptions import LocalEvalError, LocalEvalErrorCodes
from .models import SpecKind
from .specs import Specification


def _empty() -> Mapping[str, Any]:
    return MappingProxyType({})


# ペイロードのセクション名 → 仕様種別
_SECTIONS: tuple[tuple[str, SpecKind], ...] = (
    ("feature_gates", SpecKind.FEATURE_GATE),
    ("dynamic_configs", SpecKind.DYNAMIC_CONFIG),
    ("layer_configs", SpecKind.LAYER),
    ("layers", SpecKind.LAYER),
)


@dataclass(frozen=True)
class SpecSnapshot:
    """ある時点の仕様と ID リストの一貫したセット。

    置き換えは参照の差し替えのみで行い、インスタンスは変更しない。
    """

    feature_gates: Mapping[str, Specification] = field(default_factory=_empty)
    dynamic_configs: Mapping[str, Specification] = field(default_factory=_empty)
    layer_configs: Mapping[str, Specification] = field(default_factory=_empty)
    time: int = 0
    has_updates: bool = False
    id_lists: Mapping[str, frozenset[str]] = field(default_factory=_empty)

    @classmethod
    def empty(cls) -> SpecSnapshot:
        return cls()

    @classmethod
    def from_payload(cls, payload: Any) -> SpecSnapshot:
        """download_config_specs 形式の dict から SpecSnapshot を生成する。"""
        if not isinstance(payload, Mapping):
            raise LocalEvalError(
                code=LocalEvalErrorCodes.PARSE_ERROR,
                message=f"Snapshot payload must be an object, got {type(payload).__name__}",
            )
        sections: dict[SpecKind, dict[str, Specification]] = {kind: {} for kind in SpecKind}
        for key, kind in _SECTIONS:
            entries = payload.get(key)
            if entries is None:
                continue
            # layers はレイヤー → 実験名のマッピングで届くことがあり、仕様ではない
            if key == "layers" and isinstance(entries, Mapping):
                continue
            if not isinstance(entries, list):
                raise LocalEvalError(
                    code=LocalEvalErrorCodes.PARSE_ERROR,
                    message=f"Snapshot section {key!r} must be a list",
                )
            for entry in entries:
                spec = _parse_spec(entry, kind)
                sections[kind][spec.name] = spec
        try:
            time = int(payload.get("time") or 0)
        except (TypeError, ValueError) as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.PARSE_ERROR,
                message=f"Invalid snapshot time: {payload.get('time')!r}",
                cause=e,
            ) from e
        return cls(
            feature_gates=MappingProxyType(sections[SpecKind.FEATURE_GATE]),
            dynamic_configs=MappingProxyType(sections[SpecKind.DYNAMIC_CONFIG]),
            layer_configs=MappingProxyType(sections[SpecKind.LAYER]),
            time=time,
            has_updates=bool(payload.get("has_updates", False)),
        )

    @classmethod
    def from_json(cls, text: str) -> SpecSnapshot:
        try:
            payload = json.loads(text)
        except (TypeError, ValueError) as e:
            raise LocalEvalError(
                code=LocalEvalErrorCodes.PARSE_ERROR,
                message=f"Snapshot is not valid JSON: {e}",
                cause=e,
            ) from e
        return cls.from_payload(payload)

    @property
    def is_empty(self) -> bool:
        return not (self.feature_gates or self.dynamic_configs or self.layer_configs)

    def get_spec(self, name: str, kind: SpecKind) -> Specification | None:
        if kind is SpecKind.FEATURE_GATE:
            return self.feature_gates.get(name)
        if kind is SpecKind.DYNAMIC_CONFIG:
            return self.dynamic_configs.get(name)
        return self.layer_configs.get(name)

    def get_id_list(self, name: str) -> frozenset[str]:
        return self.id_lists.get(name, frozenset())

    def with_id_lists(self, id_lists: Mapping[str, frozenset[str]]) -> SpecSnapshot:
        """ID リストだけを差し替えた新しいスナップショットを返す。"""
        return replace(self, id_lists=MappingProxyType(dict(id_lists)))


def _parse_spec(entry: Any, kind: SpecKind) -> Specification:
    if not isinstance(entry, Mapping):
        raise LocalEvalError(
            code=LocalEvalErrorCodes.PARSE_ERROR,
            message=f"Spec entry must be an object, got {type(entry).__name__}",
        )
    try:
        spec = Specification.model_validate(entry)
    except ValidationError as e:
        raise LocalEvalError(
            code=LocalEvalErrorCodes.PARSE_ERROR,
            message=f"Invalid spec {entry.get('name')!r}: {e}",
            cause=e,
        ) from e
    return spec.model_copy(update={"kind": kind})
