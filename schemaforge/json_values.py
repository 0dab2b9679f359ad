"""
Helpers for plain JSON values (the decoded form: dict/list/str/int/float/bool/None).

Covers the JSON data-model questions validation keeps asking:
- which JSON kind a Python value has
- structural equality (1 == 1.0, but true != 1)
- RFC 6901 pointer rendering and parsing
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Iterable, Mapping
from fractions import Fraction
from typing import Any
from urllib.parse import unquote

from schemaforge.types import PathSegment

__all__ = [
    'canonical_key',
    'is_integer_value',
    'json_equal',
    'json_kind',
    'parse_pointer',
    'to_pointer',
]


# ==============================================================================
# Kinds
# ==============================================================================


def is_integer_value(value: Any) -> bool:
    """True for ints (not bools) and floats with no fractional part."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def json_kind(value: Any) -> str:
    """Name the JSON kind of a decoded value, using JSON Schema type names."""
    match value:
        case None:
            return 'null'
        case bool():
            return 'boolean'
        case int():
            return 'integer'
        case float():
            return 'number'
        case str():
            return 'string'
        case list() | tuple():
            return 'array'
        case Mapping():
            return 'object'
        case _:
            return type(value).__name__


# ==============================================================================
# Structural equality
# ==============================================================================


def canonical_key(value: Any) -> Hashable:
    """Hashable key such that equal keys mean equal JSON values.

    Numbers compare by exact rational value so 1 and 1.0 collide while
    0.1 and 0.1000000000000001 do not. Booleans never collide with numbers.
    """
    match value:
        case None:
            return ('null',)
        case bool():
            return ('boolean', value)
        case int():
            return ('number', Fraction(value))
        case float():
            if not math.isfinite(value):
                return ('number', repr(value))
            return ('number', Fraction(value))
        case str():
            return ('string', value)
        case list() | tuple():
            return ('array', tuple(canonical_key(item) for item in value))
        case Mapping():
            return ('object', frozenset((key, canonical_key(item)) for key, item in value.items()))
        case _:
            return ('other', repr(value))


def json_equal(left: Any, right: Any) -> bool:
    return canonical_key(left) == canonical_key(right)


# ==============================================================================
# JSON Pointer (RFC 6901)
# ==============================================================================


def _escape(segment: PathSegment) -> str:
    return str(segment).replace('~', '~0').replace('/', '~1')


def to_pointer(segments: Iterable[PathSegment]) -> str:
    """Render path segments as a JSON Pointer ('' is the document root)."""
    return ''.join(f'/{_escape(segment)}' for segment in segments)


def parse_pointer(pointer: str) -> tuple[str, ...]:
    """Split a JSON Pointer (optionally percent-encoded, as in URI fragments).

    Raises:
        ValueError: If the pointer is non-empty and does not start with '/'
    """
    pointer = unquote(pointer)
    if not pointer:
        return ()
    if not pointer.startswith('/'):
        raise ValueError(f'JSON pointer must start with "/": {pointer!r}')
    return tuple(part.replace('~1', '/').replace('~0', '~') for part in pointer[1:].split('/'))
