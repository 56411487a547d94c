"""設定読み込みのユニットテスト"""

from pathlib import Path

import pytest
from k1s0_local_eval import LocalEvalConfig, LocalEvalError, LocalEvalErrorCodes, load_config
from k1s0_local_eval.config import deep_merge


def test_default_config() -> None:
    """デフォルト値。"""
    config = LocalEvalConfig()
    assert config.timeout_seconds == 3.0
    assert config.rulesets_sync_interval_seconds == 10
    assert config.id_lists_sync_interval_seconds == 60
    assert config.local_mode is False
    assert config.bootstrap_values is None
    assert config.log.format == "json"


def test_load_minimal_config(tmp_path: Path) -> None:
    """最小設定ファイルの読み込み。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("api_key: server-secret\n")
    config = load_config(config_file)
    assert config.api_key == "server-secret"
    assert config.api_url == "https://api.k1s0.example/v1"


def test_load_with_env_override(tmp_path: Path) -> None:
    """環境別設定のマージ確認。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text(
        "api_url: http://base/v1\n"
        "environment:\n  tier: development\n  region: ap-northeast-1\n"
        "log:\n  level: DEBUG\n"
    )
    env_file = tmp_path / "prod.yaml"
    env_file.write_text("environment:\n  tier: production\nlog:\n  format: text\n")
    config = load_config(base_file, env_file)
    assert config.api_url == "http://base/v1"
    assert config.environment == {"tier": "production", "region": "ap-northeast-1"}
    assert config.log.level == "DEBUG"
    assert config.log.format == "text"


def test_load_env_not_exists(tmp_path: Path) -> None:
    """env_path が存在しない場合は base のみ使用。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text("local_mode: true\n")
    config = load_config(base_file, tmp_path / "nonexistent.yaml")
    assert config.local_mode is True


def test_load_empty_file(tmp_path: Path) -> None:
    """空ファイルはデフォルト設定。"""
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")
    assert load_config(config_file) == LocalEvalConfig()


def test_load_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルで CONFIG_ERROR が発生すること。"""
    with pytest.raises(LocalEvalError) as exc_info:
        load_config(tmp_path / "missing.yaml")
    assert exc_info.value.code == LocalEvalErrorCodes.CONFIG_ERROR


def test_load_invalid_yaml(tmp_path: Path) -> None:
    """不正 YAML で CONFIG_ERROR が発生すること。"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("log: {invalid: yaml: content:\n")
    with pytest.raises(LocalEvalError) as exc_info:
        load_config(bad_file)
    assert exc_info.value.code == LocalEvalErrorCodes.CONFIG_ERROR


def test_load_non_mapping_root(tmp_path: Path) -> None:
    """ルートがマッピングでなければ CONFIG_ERROR。"""
    bad_file = tmp_path / "list.yaml"
    bad_file.write_text("- a\n- b\n")
    with pytest.raises(LocalEvalError) as exc_info:
        load_config(bad_file)
    assert exc_info.value.code == LocalEvalErrorCodes.CONFIG_ERROR


def test_load_validation_error(tmp_path: Path) -> None:
    """バリデーション失敗で CONFIG_ERROR が発生すること。"""
    bad_config = tmp_path / "bad_config.yaml"
    bad_config.write_text("timeout_seconds: 0\n")
    with pytest.raises(LocalEvalError) as exc_info:
        load_config(bad_config)
    assert exc_info.value.code == LocalEvalErrorCodes.CONFIG_ERROR


def test_deep_merge() -> None:
    """ネストした辞書のマージ。"""
    base = {"a": 1, "nested": {"x": 1, "y": 2}}
    merged = deep_merge(base, {"nested": {"y": 3}, "b": 2})
    assert merged == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}
    assert base == {"a": 1, "nested": {"x": 1, "y": 2}}
