"""DynamicConfig 型付き値ラッパー"""

from __future__ import annotations

from typing import Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_number(text: str) -> int | float | None:
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number) if number.is_integer() else number


class DynamicConfig:
    """JSON 値を型付きアクセサで読み出すラッパー。

    アクセサは型不一致で例外を送出せず、呼び出し側のデフォルト値
    （不正な型のデフォルトはゼロ値）を返す。
    """

    def __init__(self, name: str = "", value: Any = None, rule_name: str = "") -> None:
        self.name = name
        self.rule_name = rule_name
        self._value: Any = {} if value is None else value

    def __repr__(self) -> str:
        return f"DynamicConfig(name={self.name!r}, value={self._value!r}, rule_name={self.rule_name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DynamicConfig):
            return NotImplemented
        return (
            self.name == other.name
            and self.rule_name == other.rule_name
            and self._value == other._value
        )

    def get_raw_value(self) -> Any:
        """ラップしている生の値を返す。"""
        return self._value

    def _member(self, key: str) -> tuple[bool, Any]:
        if isinstance(self._value, dict) and key in self._value:
            return True, self._value[key]
        return False, None

    def get_value(self, key: str | None = None, default: Any = None) -> Any:
        """キーに対応する生の値を返す。key 省略時は値全体。"""
        if key is None:
            return self._value
        found, member = self._member(key)
        return member if found else default

    def get_string(self, key: str, default: Any = "") -> str:
        if not isinstance(default, str):
            default = ""
        found, member = self._member(key)
        if not found:
            return default
        if isinstance(member, str):
            return member
        if isinstance(member, bool):
            return "true" if member else "false"
        if _is_number(member):
            return _format_number(member)
        return default

    def get_number(self, key: str, default: Any = 0) -> int | float:
        if not _is_number(default):
            default = 0
        found, member = self._member(key)
        if not found:
            return default
        if isinstance(member, bool):
            return 1 if member else 0
        if _is_number(member):
            return member
        if isinstance(member, str):
            parsed = _parse_number(member)
            return default if parsed is None else parsed
        return default

    def get_bool(self, key: str, default: Any = False) -> bool:
        if not isinstance(default, bool):
            default = False
        found, member = self._member(key)
        if not found:
            return default
        if isinstance(member, bool):
            return member
        if isinstance(member, str):
            lowered = member.lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        return default

    def get_object(self, key: str, default: Any = None) -> DynamicConfig:
        """dict 値を DynamicConfig として返す。dict 以外はデフォルト。"""
        found, member = self._member(key)
        if found and isinstance(member, dict):
            return DynamicConfig(key, member, self.rule_name)
        if isinstance(default, dict):
            return DynamicConfig(key, default, self.rule_name)
        return DynamicConfig(key, {}, self.rule_name)
