"""SpecSnapshot / 仕様モデルのユニットテスト"""

import json

import pytest
from fakes import NFL_GATE, TEAMS_CONFIG, make_payload
from k1s0_local_eval import LocalEvalError, LocalEvalErrorCodes, SpecKind, SpecSnapshot


def test_from_payload() -> None:
    """セクションごとに仕様種別を割り当てること。"""
    snapshot = SpecSnapshot.from_payload(make_payload([NFL_GATE], [TEAMS_CONFIG], time=42))
    assert snapshot.time == 42
    assert snapshot.has_updates is True
    gate = snapshot.get_spec("nfl_gate", SpecKind.FEATURE_GATE)
    config = snapshot.get_spec("teams", SpecKind.DYNAMIC_CONFIG)
    assert gate is not None and gate.kind is SpecKind.FEATURE_GATE
    assert config is not None and config.kind is SpecKind.DYNAMIC_CONFIG
    assert snapshot.get_spec("teams", SpecKind.FEATURE_GATE) is None


def test_spec_aliases() -> None:
    """camelCase のキーを読み取ること。"""
    snapshot = SpecSnapshot.from_payload(make_payload(configs=[TEAMS_CONFIG]))
    spec = snapshot.get_spec("teams", SpecKind.DYNAMIC_CONFIG)
    assert spec is not None
    assert spec.default_value == {"seahawks": None}
    assert spec.rules[0].pass_percentage == 100
    condition = spec.rules[0].conditions[0]
    assert condition.target_value == 5
    assert condition.field == "level"
    assert spec.rules[0].return_value["seahawks"]["yearFounded"] == 1974


def test_layers_mapping_is_ignored() -> None:
    """layers がレイヤー名 → 実験名のマッピングの場合は読み飛ばすこと。"""
    payload = make_payload([NFL_GATE])
    payload["layers"] = {"checkout_layer": ["exp_1"]}
    snapshot = SpecSnapshot.from_payload(payload)
    assert list(snapshot.feature_gates) == ["nfl_gate"]
    assert not snapshot.layer_configs


def test_empty_snapshot() -> None:
    """空スナップショット。"""
    snapshot = SpecSnapshot.empty()
    assert snapshot.is_empty
    assert snapshot.time == 0
    assert snapshot.get_id_list("anything") == frozenset()


def test_snapshot_is_immutable() -> None:
    """スナップショットの内容は変更できないこと。"""
    snapshot = SpecSnapshot.from_payload(make_payload([NFL_GATE]))
    with pytest.raises(TypeError):
        snapshot.feature_gates["other"] = snapshot.feature_gates["nfl_gate"]  # type: ignore[index]


def test_with_id_lists_returns_new_snapshot() -> None:
    """ID リストの差し替えは元のスナップショットに影響しないこと。"""
    original = SpecSnapshot.from_payload(make_payload([NFL_GATE]))
    updated = original.with_id_lists({"vip": frozenset({"abc"})})
    assert updated is not original
    assert updated.get_id_list("vip") == frozenset({"abc"})
    assert original.get_id_list("vip") == frozenset()
    assert updated.feature_gates is original.feature_gates


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"feature_gates": {"nfl_gate": NFL_GATE}},
        {"feature_gates": ["not-an-object"]},
        {"feature_gates": [{"type": "feature_gate"}]},
        {"feature_gates": [], "time": "yesterday"},
    ],
)
def test_malformed_payload_raises(payload: object) -> None:
    """不正なペイロードは PARSE_ERROR。"""
    with pytest.raises(LocalEvalError) as exc_info:
        SpecSnapshot.from_payload(payload)
    assert exc_info.value.code == LocalEvalErrorCodes.PARSE_ERROR


def test_from_json() -> None:
    """JSON 文字列から生成できること。"""
    snapshot = SpecSnapshot.from_json(json.dumps(make_payload([NFL_GATE])))
    assert "nfl_gate" in snapshot.feature_gates
    with pytest.raises(LocalEvalError) as exc_info:
        SpecSnapshot.from_json("{not json")
    assert exc_info.value.code == LocalEvalErrorCodes.PARSE_ERROR
