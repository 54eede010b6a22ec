"""
Blueprint Engine — Safe Accessors

Dotted-path traversal over untyped JSON. Every step threads an explicit
ABSENT marker instead of None, so business rules can tell "missing" from
"present but null" without scattering isinstance checks.
"""

from __future__ import annotations

from typing import Any, Mapping


class _Absent:
    """Singleton marker for a value that does not exist."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Absent:
        return self

    def __deepcopy__(self, memo: dict) -> _Absent:
        return self

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT: Any = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


def get_key(obj: Any, key: str) -> Any:
    """One traversal step. Non-mappings and missing keys yield ABSENT."""
    if isinstance(obj, Mapping) and key in obj:
        return obj[key]
    return ABSENT


def get_nested(obj: Any, dotted_path: str) -> Any:
    """
    Resolve "a.b.c" against nested mappings.

    Short-circuits to ABSENT at the first missing or non-mapping node.
    """
    current = obj
    for key in dotted_path.split("."):
        current = get_key(current, key)
        if current is ABSENT:
            return ABSENT
    return current


def has_text(value: Any) -> bool:
    """Static-answer rule: not absent, not null, non-blank string form."""
    if value is ABSENT or value is None:
        return False
    return string_form(value).strip() != ""


def is_non_empty(value: Any) -> bool:
    """Dynamic-answer rule: lists need an element, scalars need text."""
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    return has_text(value)


def string_form(value: Any) -> str:
    """
    String coercion matching the browser client that wrote the answers:
    lists join their elements with commas and null elements render empty.
    """
    if value is None or value is ABSENT:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(string_form(v) for v in value)
    return str(value)


def mapping_or_empty(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def list_or_empty(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []
