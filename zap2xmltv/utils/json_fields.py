"""
Optional field extraction for loosely-typed JSON payloads.

Every helper returns None when the key is absent or holds a value of the
wrong type, so callers never index a payload blindly.
"""
from typing import Any


def get_str(record: Any, key: str) -> str | None:
    """Return record[key] if record is a dict and the value is a string."""
    if not isinstance(record, dict):
        return None
    value = record.get(key)
    return value if isinstance(value, str) else None


def get_non_empty_str(record: Any, key: str) -> str | None:
    """Like get_str, but blank strings count as absent."""
    value = get_str(record, key)
    if value is None or not value.strip():
        return None
    return value


def get_list(record: Any, key: str) -> list | None:
    if not isinstance(record, dict):
        return None
    value = record.get(key)
    return value if isinstance(value, list) else None


def get_dict(record: Any, key: str) -> dict | None:
    if not isinstance(record, dict):
        return None
    value = record.get(key)
    return value if isinstance(value, dict) else None
