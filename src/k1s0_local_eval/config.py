"""設定型定義と YAML 読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import LocalEvalError, LocalEvalErrorCodes


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class LocalEvalConfig(BaseModel):
    """ローカル評価クライアント設定。"""

    api_url: str = "https://api.k1s0.example/v1"
    api_key: str = ""
    timeout_seconds: float = Field(default=3.0, gt=0)
    rulesets_sync_interval_seconds: float = Field(default=10.0, ge=1)
    id_lists_sync_interval_seconds: float = Field(default=60.0, ge=1)
    # True の場合ネットワークに一切アクセスしない
    local_mode: bool = False
    bootstrap_values: str | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    log: LogSection = Field(default_factory=LogSection)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。"""
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise LocalEvalError(
            code=LocalEvalErrorCodes.CONFIG_ERROR,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise LocalEvalError(
            code=LocalEvalErrorCodes.CONFIG_ERROR,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise LocalEvalError(
            code=LocalEvalErrorCodes.CONFIG_ERROR,
            message=f"Config root must be a mapping: {path}",
        )
    return data


def load_config(path: Path, env_path: Path | None = None) -> LocalEvalConfig:
    """設定ファイルを読み込んで LocalEvalConfig を返す。

    path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_yaml(path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path))
    try:
        return LocalEvalConfig.model_validate(data)
    except ValidationError as e:
        raise LocalEvalError(
            code=LocalEvalErrorCodes.CONFIG_ERROR,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
