"""Helpers for merging optional per-page values from several sources"""
from typing import Any


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict, tuple, bytes)) and not value:
        return False
    return True


def first_present(*candidates: Any, default: Any = None) -> Any:
    """First candidate that is neither None nor empty, else `default`"""
    for candidate in candidates:
        if is_present(candidate):
            return candidate
    return default
