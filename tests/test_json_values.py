"""
Tests for JSON value helpers - kinds, structural equality and JSON pointers.
"""

from __future__ import annotations

from typing import Any

import pytest

from schemaforge.json_values import canonical_key, is_integer_value, json_equal, json_kind, parse_pointer, to_pointer


@pytest.mark.parametrize(
    ('value', 'kind'),
    [
        (None, 'null'),
        (True, 'boolean'),
        (1, 'integer'),
        (1.5, 'number'),
        ('a', 'string'),
        ([1], 'array'),
        ({'a': 1}, 'object'),
    ],
    ids=['null', 'boolean', 'integer', 'number', 'string', 'array', 'object'],
)
def test_json_kind(value: Any, kind: str) -> None:
    assert json_kind(value) == kind


def test_is_integer_value() -> None:
    assert is_integer_value(3)
    assert is_integer_value(3.0)
    assert not is_integer_value(3.5)
    assert not is_integer_value(True)


@pytest.mark.parametrize(
    ('left', 'right', 'equal'),
    [
        (1, 1.0, True),
        (True, 1, False),
        (False, 0, False),
        (None, None, True),
        ({'a': [1, {'b': 2}]}, {'a': [1.0, {'b': 2}]}, True),
        ({'a': 1}, {'a': 1, 'b': 2}, False),
        ([1, 2], [2, 1], False),
        (0.1, 0.1000000000000001, False),
    ],
    ids=['int-float', 'bool-int', 'false-zero', 'null', 'nested', 'extra-key', 'order', 'close-floats'],
)
def test_json_equal(left: Any, right: Any, equal: bool) -> None:
    assert json_equal(left, right) is equal


def test_canonical_key_is_hashable_for_nested_values() -> None:
    assert hash(canonical_key({'a': [1, {'b': None}]})) == hash(canonical_key({'a': [1.0, {'b': None}]}))


def test_pointer_round_trip_with_escapes() -> None:
    segments = ('properties', 'a/b', 'c~d', 0)
    pointer = to_pointer(segments)
    assert pointer == '/properties/a~1b/c~0d/0'
    assert parse_pointer(pointer) == ('properties', 'a/b', 'c~d', '0')


def test_root_pointer() -> None:
    assert to_pointer(()) == ''
    assert parse_pointer('') == ()


def test_pointer_must_start_with_slash() -> None:
    with pytest.raises(ValueError, match='must start with'):
        parse_pointer('properties/a')
