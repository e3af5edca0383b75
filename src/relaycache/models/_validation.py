"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__`` and
``from_dict`` methods in sibling model modules to enforce wire-level type
constraints before an instance escapes its constructor.
"""

from __future__ import annotations

from typing import Any


_HEX_DIGITS = frozenset("0123456789abcdef")


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_int(value: Any, name: str, *, minimum: int = 0, maximum: int | None = None) -> None:
    """Raise if *value* is not an ``int`` (``bool`` excluded) within bounds."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    if maximum is not None and value > maximum:
        raise ValueError(f"{name} must be <= {maximum}, got {value}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_hex(value: Any, name: str, length: int) -> None:
    """Raise if *value* is not a lowercase hex string of exactly *length* chars."""
    validate_str_no_null(value, name)
    if len(value) != length:
        raise ValueError(f"{name} must be {length} hex chars, got {len(value)}")
    if not set(value) <= _HEX_DIGITS:
        raise ValueError(f"{name} must be lowercase hex")


def validate_tags(value: Any, name: str) -> None:
    """Raise if *value* is not a list of lists of strings."""
    validate_instance(value, list, name)
    for i, tag in enumerate(value):
        validate_instance(tag, list, f"{name}[{i}]")
        for item in tag:
            validate_str_no_null(item, f"{name}[{i}] item")
