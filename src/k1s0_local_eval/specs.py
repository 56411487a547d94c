"""ルール仕様モデル（pydantic BaseModel）"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import SpecKind

_MODEL_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Condition(BaseModel):
    """ルール内の単一条件。"""

    model_config = _MODEL_CONFIG

    type: str
    operator: str | None = None
    field: str | None = None
    target_value: Any = Field(default=None, alias="value")
    id_type: str | None = Field(default=None, alias="idType")


class Rule(BaseModel):
    """仕様の 1 分岐。条件はすべて AND で評価される。"""

    model_config = _MODEL_CONFIG

    name: str
    pass_percentage: float = Field(default=100.0, alias="passPercentage", ge=0, le=100)
    conditions: tuple[Condition, ...] = ()
    return_value: Any = Field(default=None, alias="returnValue")
    id_type: str | None = Field(default=None, alias="idType")


class Specification(BaseModel):
    """名前付きゲート / Dynamic Config / レイヤー。"""

    model_config = _MODEL_CONFIG

    name: str
    type: str = ""
    salt: str = ""
    default_value: Any = Field(default=None, alias="defaultValue")
    enabled: bool = True
    rules: tuple[Rule, ...] = ()
    kind: SpecKind = SpecKind.FEATURE_GATE
