"""条件演算子の定義"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

import semver

from .hashing import hash_unit_id
from .models import Decision
from .snapshot import SpecSnapshot

_Comparator = Callable[[Any, Any], bool]

# ローカルでは評価できない日付演算子
DATE_OPERATORS: frozenset[str] = frozenset({"before", "after", "on"})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equals(a: Any, b: Any) -> bool:
    """型が一致する場合のみ等価とみなす比較。"""
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, bool) and isinstance(b, bool):
        return a is b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def _contains(items: list[Any], value: Any) -> bool:
    return any(strict_equals(value, item) for item in items)


def parse_version(value: Any) -> semver.Version | None:
    """semver として解釈できれば Version、できなければ None。"""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text[:1] in ("v", "="):
        text = text[1:]
    try:
        return semver.Version.parse(text)
    except ValueError:
        return None


def _number_compare(fn: Callable[[float, float], bool]) -> _Comparator:
    def compare(a: Any, b: Any) -> bool:
        return _is_number(a) and _is_number(b) and fn(a, b)

    return compare


def _version_compare(fn: Callable[[int], bool]) -> _Comparator:
    def compare(a: Any, b: Any) -> bool:
        version_a = parse_version(a)
        version_b = parse_version(b)
        if version_a is None or version_b is None:
            return False
        return fn(version_a.compare(version_b))

    return compare


def _string_compare(fn: Callable[[str, str], bool]) -> _Comparator:
    def compare(a: Any, b: Any) -> bool:
        return isinstance(a, str) and isinstance(b, str) and fn(a, b)

    return compare


def _string_compare_any(fn: Callable[[str, str], bool]) -> _Comparator:
    single = _string_compare(fn)

    def compare(a: Any, b: Any) -> bool:
        if isinstance(b, list):
            return any(single(a, item) for item in b)
        return single(a, b)

    return compare


def _regex_search(value: str, pattern: str) -> bool:
    try:
        return re.search(pattern, value) is not None
    except re.error:
        return False


def _any(a: Any, b: Any) -> bool:
    return isinstance(b, list) and _contains(b, a)


def _none(a: Any, b: Any) -> bool:
    return isinstance(b, list) and not _contains(b, a)


OPERATORS: dict[str, _Comparator] = {
    # numerical
    "gt": _number_compare(lambda a, b: a > b),
    "gte": _number_compare(lambda a, b: a >= b),
    "lt": _number_compare(lambda a, b: a < b),
    "lte": _number_compare(lambda a, b: a <= b),
    # version
    "version_gt": _version_compare(lambda c: c > 0),
    "version_gte": _version_compare(lambda c: c >= 0),
    "version_lt": _version_compare(lambda c: c < 0),
    "version_lte": _version_compare(lambda c: c <= 0),
    "version_eq": _version_compare(lambda c: c == 0),
    "version_neq": _version_compare(lambda c: c != 0),
    # array
    "any": _any,
    "none": _none,
    # string
    "str_starts_with_any": _string_compare_any(lambda a, b: a.startswith(b)),
    "str_ends_with_any": _string_compare_any(lambda a, b: a.endswith(b)),
    "str_contains_any": _string_compare_any(lambda a, b: b in a),
    "str_matches": _string_compare(_regex_search),
    # strict equality
    "equals": strict_equals,
    "not_equal": lambda a, b: not strict_equals(a, b),
}


def _in_segment_list(value: Any, list_name: Any, snapshot: SpecSnapshot) -> bool:
    if not isinstance(list_name, str) or value is None:
        return False
    return hash_unit_id(str(value)) in snapshot.get_id_list(list_name)


def apply_operator(
    operator: str | None,
    value: Any,
    target: Any,
    snapshot: SpecSnapshot,
) -> Decision:
    """演算子を (value, target) に適用して判定を返す。"""
    op = (operator or "").lower()
    if op == "in_segment_list":
        matched = _in_segment_list(value, target, snapshot)
    elif op == "not_in_segment_list":
        matched = not _in_segment_list(value, target, snapshot)
    elif op in DATE_OPERATORS or op not in OPERATORS:
        return Decision.DEFER_TO_REMOTE
    else:
        matched = OPERATORS[op](value, target)
    return Decision.PASS if matched else Decision.FAIL
