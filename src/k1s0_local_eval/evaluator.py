"""ローカル評価エンジン

仕様 → ルール → 条件の順に評価する。ゲート参照は同じスナップショット内で
再帰的に解決し、ローカルで判定できない場合は ``Decision.DEFER_TO_REMOTE`` を返す。
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

import structlog

from .dynamic_config import DynamicConfig
from .hashing import passes_percentage
from .metrics import evaluation_deferred_total
from .models import Decision, EvaluationResult, SpecKind, User
from .operators import apply_operator
from .snapshot import SpecSnapshot
from .specs import Condition, Rule, Specification

logger = structlog.stdlib.get_logger(__name__)

DEFAULT_RULE_NAME = "default"


class IPResolver(Protocol):
    """IP アドレスから国・地域などを導出するプロトコル。"""

    def lookup(self, ip: str, field: str) -> Any: ...


class UserAgentResolver(Protocol):
    """User-Agent から OS・ブラウザなどを導出するプロトコル。"""

    def lookup(self, user_agent: str, field: str) -> Any: ...


class Evaluator:
    """スナップショットに対する同期・副作用なしの評価器。

    呼び出しごとの可変状態を持たないため、複数の呼び出し元から
    同時に使用できる。
    """

    def __init__(
        self,
        environment: Mapping[str, str] | None = None,
        ip_resolver: IPResolver | None = None,
        ua_resolver: UserAgentResolver | None = None,
    ) -> None:
        self._environment = dict(environment or {})
        self._ip_resolver = ip_resolver
        self._ua_resolver = ua_resolver

    def check_gate(
        self, snapshot: SpecSnapshot, user: User, gate_name: str
    ) -> EvaluationResult | Decision:
        return self.evaluate(snapshot, user, gate_name, SpecKind.FEATURE_GATE)

    def get_config(
        self, snapshot: SpecSnapshot, user: User, config_name: str
    ) -> EvaluationResult | Decision:
        return self.evaluate(snapshot, user, config_name, SpecKind.DYNAMIC_CONFIG)

    def get_layer(
        self, snapshot: SpecSnapshot, user: User, layer_name: str
    ) -> EvaluationResult | Decision:
        return self.evaluate(snapshot, user, layer_name, SpecKind.LAYER)

    def evaluate(
        self,
        snapshot: SpecSnapshot,
        user: User,
        spec_name: str,
        kind: SpecKind,
    ) -> EvaluationResult | Decision:
        """名前付き仕様を評価する。スナップショットに無ければ DEFER_TO_REMOTE。"""
        spec = snapshot.get_spec(spec_name, kind)
        if spec is None:
            logger.debug("Spec not found in snapshot", spec_name=spec_name, kind=str(kind))
            evaluation_deferred_total.add(1, {"reason": "missing_spec"})
            return Decision.DEFER_TO_REMOTE
        visited = frozenset({spec_name}) if kind is SpecKind.FEATURE_GATE else frozenset()
        result = self._evaluate_spec(spec, user, snapshot, visited)
        if result is Decision.DEFER_TO_REMOTE:
            evaluation_deferred_total.add(1, {"reason": "undecidable"})
        return result

    def _evaluate_spec(
        self,
        spec: Specification,
        user: User,
        snapshot: SpecSnapshot,
        visited: frozenset[str],
    ) -> EvaluationResult | Decision:
        if not spec.enabled:
            return self._default_result(spec)
        for rule in spec.rules:
            decision = self._evaluate_rule(spec, rule, user, snapshot, visited)
            if decision is Decision.DEFER_TO_REMOTE:
                return decision
            if decision is Decision.PASS:
                if spec.kind.is_boolean:
                    return EvaluationResult(spec.name, spec.kind, True, rule.name)
                return EvaluationResult(
                    spec.name,
                    spec.kind,
                    DynamicConfig(spec.name, rule.return_value, rule.name),
                    rule.name,
                )
        return self._default_result(spec)

    def _default_result(self, spec: Specification) -> EvaluationResult:
        if spec.kind.is_boolean:
            return EvaluationResult(
                spec.name, spec.kind, spec.default_value is True, DEFAULT_RULE_NAME
            )
        return EvaluationResult(
            spec.name,
            spec.kind,
            DynamicConfig(spec.name, spec.default_value, DEFAULT_RULE_NAME),
            DEFAULT_RULE_NAME,
        )

    def _evaluate_rule(
        self,
        spec: Specification,
        rule: Rule,
        user: User,
        snapshot: SpecSnapshot,
        visited: frozenset[str],
    ) -> Decision:
        # 判定不能な条件がどこにあっても DEFER を優先するため、FAIL では止めない
        failed = False
        for condition in rule.conditions:
            decision = self._evaluate_condition(condition, user, snapshot, visited)
            if decision is Decision.DEFER_TO_REMOTE:
                return decision
            if decision is Decision.FAIL:
                failed = True
        if failed:
            return Decision.FAIL
        unit_id = user.get_unit_id(rule.id_type) or ""
        salt = spec.salt or spec.name
        if passes_percentage(rule.pass_percentage, salt, rule.name, unit_id):
            return Decision.PASS
        return Decision.FAIL

    def _evaluate_condition(
        self,
        condition: Condition,
        user: User,
        snapshot: SpecSnapshot,
        visited: frozenset[str],
    ) -> Decision:
        condition_type = condition.type.lower()
        field = condition.field or ""
        value: Any
        if condition_type == "public":
            return Decision.PASS
        if condition_type in ("pass_gate", "fail_gate"):
            return self._evaluate_gate_reference(condition, user, snapshot, visited)
        if condition_type == "ip_based":
            value = user.get_field(field)
            if value is None:
                if self._ip_resolver is None:
                    return Decision.DEFER_TO_REMOTE
                value = self._ip_resolver.lookup(user.ip, field) if user.ip else None
        elif condition_type == "ua_based":
            value = user.get_field(field)
            if value is None:
                if self._ua_resolver is None:
                    return Decision.DEFER_TO_REMOTE
                value = (
                    self._ua_resolver.lookup(user.user_agent, field)
                    if user.user_agent
                    else None
                )
        elif condition_type == "user_field":
            value = user.get_field(field)
        elif condition_type == "unit_id":
            value = user.get_unit_id(condition.id_type)
        elif condition_type == "environment_field":
            value = self._environment.get(field)
        else:
            return Decision.DEFER_TO_REMOTE

        if value is None:
            return Decision.FAIL
        return apply_operator(condition.operator, value, condition.target_value, snapshot)

    def _evaluate_gate_reference(
        self,
        condition: Condition,
        user: User,
        snapshot: SpecSnapshot,
        visited: frozenset[str],
    ) -> Decision:
        gate_name = condition.target_value
        if not isinstance(gate_name, str):
            return Decision.FAIL
        if gate_name in visited:
            logger.warning("Gate reference cycle detected", spec_name=gate_name)
            return Decision.FAIL
        gate = snapshot.feature_gates.get(gate_name)
        if gate is None:
            return Decision.FAIL
        result = self._evaluate_spec(gate, user, snapshot, visited | {gate_name})
        if result is Decision.DEFER_TO_REMOTE:
            return result
        passed = isinstance(result, EvaluationResult) and result.value is True
        if condition.type.lower() == "fail_gate":
            passed = not passed
        return Decision.PASS if passed else Decision.FAIL
