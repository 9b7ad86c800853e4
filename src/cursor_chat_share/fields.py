"""Defensive accessors for shape-unknown JSON records.

Every helper here treats an absent or wrong-typed value as "not present"
and never raises.
"""

from typing import Any, Iterable, Optional


def is_number(value: Any) -> bool:
    """True for ints and floats, excluding bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def dig(obj: Any, *path: str) -> Any:
    """Follow a path of dict keys, returning None if any step is missing."""
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def first_text(obj: Any, fields: Iterable[str]) -> str:
    """Return the first field holding a string with non-whitespace content."""
    if not isinstance(obj, dict):
        return ""
    for name in fields:
        value = obj.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def first_positive_number(values: Iterable[Any]) -> Optional[Any]:
    """Return the first positive number in values, or None."""
    for value in values:
        if is_number(value) and value > 0:
            return value
    return None


def normalize_number(value: Any) -> Any:
    """Store integral floats as ints so they render and compare cleanly."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
