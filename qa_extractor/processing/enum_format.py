"""Normalization of free-form labels into UPPERCASE_SNAKE_CASE."""

import re
from typing import Any

NOT_AVAILABLE = "N/A"

_EMPTY_MARKERS = {"", "N/A", "NAN", "NONE", "NULL"}
_NON_ALNUM = re.compile(r"[^A-Z0-9]+")


def _is_empty_like(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip().upper() in _EMPTY_MARKERS


def _normalize_scalar(value: Any) -> str:
    if _is_empty_like(value):
        return ""
    text = _NON_ALNUM.sub("_", str(value).strip().upper())
    return text.strip("_")


def format_enum(value: Any) -> str:
    """Normalize a label or list of labels.

    Examples:
        >>> format_enum("Java Script!")
        'JAVA_SCRIPT'
        >>> format_enum("  n/a ")
        'N/A'
        >>> format_enum(["Python", "C++"])
        'PYTHON, C'
    """
    if isinstance(value, (list, tuple)):
        parts = [_normalize_scalar(item) for item in value]
        parts = [part for part in parts if part]
        return ", ".join(parts) if parts else NOT_AVAILABLE

    normalized = _normalize_scalar(value)
    return normalized or NOT_AVAILABLE
