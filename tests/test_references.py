"""
Tests for $ref / $dynamicRef resolution during validation.

Covers static pointers and anchors, pre-registered external resources, dynamic
scope selection (innermost and outermost) and the reference cycle policy.
"""

from __future__ import annotations

from typing import Any

import pytest

from schemaforge.registry import Registry
from schemaforge.schemas.nodes import DynamicRefNode, RefNode, StringNode
from schemaforge.schemas.parser import parse_schema
from schemaforge.validation.context import ValidationContext, ValidationOptions
from schemaforge.validation.engine import SchemaValidator, validate
from schemaforge.validation.resolver import resolve_reference

TREE = {
    '$id': 'https://example.com/tree',
    '$dynamicAnchor': 'node',
    'type': 'object',
    'properties': {
        'name': {'type': 'string'},
        'children': {'type': 'array', 'items': {'$dynamicRef': '#node'}},
    },
}

STRICT_TREE = {
    '$id': 'https://example.com/strict-tree',
    '$dynamicAnchor': 'node',
    '$ref': 'tree',
    'required': ['name'],
}


def _kinds(errors: list[Any]) -> list[tuple[str, str]]:
    return [(error.instance_pointer, error.kind) for error in errors]


# ==============================================================================
# Static references
# ==============================================================================


def test_ref_to_defs() -> None:
    schema = parse_schema(
        {
            'type': 'object',
            'properties': {'owner': {'$ref': '#/$defs/User'}},
            '$defs': {'User': {'type': 'object', 'required': ['name']}},
        }
    )
    assert validate(schema, {'owner': {'name': 'a'}}) == []

    errors = validate(schema, {'owner': {}})
    assert _kinds(errors) == [('/owner', 'RequiredPropertyMissing')]
    assert errors[0].schema_pointer == '#/properties/owner/$ref/required'


def test_missing_definition_is_a_single_unresolved_error() -> None:
    schema = parse_schema({'$ref': '#/$defs/Missing'})
    errors = validate(schema, {'anything': True})

    assert len(errors) == 1
    assert errors[0].keyword == '$ref'
    assert errors[0].kind == 'UnresolvedReference'
    assert '#/$defs/Missing' in errors[0].message


def test_remote_reference_is_not_fetched() -> None:
    schema = parse_schema({'$ref': 'https://example.com/remote.json'})
    assert _kinds(validate(schema, 1)) == [('', 'UnresolvedReference')]


def test_ref_to_anchor() -> None:
    schema = parse_schema(
        {'$ref': '#positive', '$defs': {'p': {'$anchor': 'positive', 'type': 'integer', 'minimum': 1}}}
    )
    assert validate(schema, 3) == []
    assert _kinds(validate(schema, 0)) == [('', 'RangeViolation')]


def test_relative_ref_inside_embedded_resource() -> None:
    schema = parse_schema(
        {
            '$id': 'https://example.com/root',
            'properties': {'item': {'$ref': 'item#/$defs/Code'}},
            '$defs': {
                'item': {
                    '$id': 'item',
                    '$defs': {'Code': {'type': 'string', 'pattern': '^[A-Z]{3}$'}},
                },
            },
        }
    )
    assert validate(schema, {'item': 'ABC'}) == []
    assert _kinds(validate(schema, {'item': 'abc'})) == [('/item', 'PatternMismatch')]


def test_pointer_into_object_with_applicators() -> None:
    schema = parse_schema(
        {
            'type': 'object',
            'properties': {'a': {'type': 'string'}, 'b': {'$ref': '#/properties/a'}},
            'allOf': [{'required': ['a']}],
        }
    )
    assert validate(schema, {'a': 'x', 'b': 'y'}) == []

    errors = validate(schema, {'b': 1})
    assert _kinds(errors) == [('/b', 'TypeMismatch'), ('', 'RequiredPropertyMissing')]
    assert [error.schema_pointer for error in errors] == ['#/properties/b/$ref/type', '#/allOf/0/required']


def test_pointer_into_type_array() -> None:
    schema = parse_schema(
        {
            'type': 'object',
            'properties': {
                'codes': {'type': ['array', 'null'], 'items': {'type': 'string', 'pattern': '^[A-Z]+$'}},
                'primary': {'$ref': '#/properties/codes/items'},
            },
        }
    )
    assert validate(schema, {'codes': None, 'primary': 'ABC'}) == []
    assert _kinds(validate(schema, {'codes': ['ABC'], 'primary': 'abc'})) == [('/primary', 'PatternMismatch')]


def test_pre_registered_external_schema() -> None:
    common = parse_schema({'$defs': {'Email': {'type': 'string', 'format': 'email'}}})
    schema = parse_schema({'properties': {'contact': {'$ref': 'https://example.com/common#/$defs/Email'}}})
    validator = SchemaValidator.for_schema(schema, externals={'https://example.com/common': common})

    assert validator.is_valid({'contact': 'a@example.com'})
    assert _kinds(validator.validate({'contact': 'nope'})) == [('/contact', 'FormatViolation')]


# ==============================================================================
# Cycle policy
# ==============================================================================


def test_reference_cycle_without_progress_is_reported() -> None:
    schema = parse_schema(
        {
            '$ref': '#/$defs/A',
            '$defs': {'A': {'$ref': '#/$defs/B'}, 'B': {'$ref': '#/$defs/A'}},
        }
    )
    errors = validate(schema, {'x': 1})

    assert len(errors) == 1
    assert errors[0].kind == 'CyclicReference'
    assert errors[0].keyword == '$ref'


def test_self_reference_is_reported_once() -> None:
    schema = parse_schema({'$defs': {'Loop': {'$ref': '#/$defs/Loop'}}, '$ref': '#/$defs/Loop'})
    assert [error.kind for error in validate(schema, None)] == ['CyclicReference']


def test_recursion_that_consumes_input_terminates() -> None:
    schema = parse_schema(
        {
            '$ref': '#/$defs/List',
            '$defs': {
                'List': {
                    'type': 'object',
                    'properties': {'value': {'type': 'integer'}, 'next': {'$ref': '#/$defs/List'}},
                }
            },
        }
    )
    instance = {'value': 1, 'next': {'value': 2, 'next': {'value': 'three'}}}
    assert _kinds(validate(schema, instance)) == [('/next/next/value', 'TypeMismatch')]


# ==============================================================================
# Dynamic references
# ==============================================================================


def test_dynamic_ref_resolves_to_own_resource_alone() -> None:
    tree = parse_schema(TREE)
    assert validate(tree, {'children': [{'children': []}]}) == []
    assert _kinds(validate(tree, {'children': [{'name': 1}]})) == [('/children/0/name', 'TypeMismatch')]


@pytest.mark.parametrize(
    ('order', 'expected'),
    [
        ('innermost', []),
        ('outermost', [('/children/0', 'RequiredPropertyMissing')]),
    ],
    ids=['innermost', 'outermost'],
)
def test_dynamic_scope_order(order: str, expected: list[tuple[str, str]]) -> None:
    """Innermost picks the referenced tree's own anchor; outermost picks the extending schema's."""
    strict = parse_schema(STRICT_TREE)
    validator = SchemaValidator.for_schema(
        strict,
        externals={'https://example.com/tree': parse_schema(TREE)},
        options=ValidationOptions(dynamic_scope_order=order),  # type: ignore[arg-type]
    )
    instance = {'name': 'root', 'children': [{'children': []}]}
    assert _kinds(validator.validate(instance)) == expected


def test_dynamic_ref_without_matching_anchor_falls_back_to_static() -> None:
    schema = parse_schema(
        {
            'properties': {'value': {'$dynamicRef': '#/$defs/Value'}},
            '$defs': {'Value': {'type': 'integer'}},
        }
    )
    assert validate(schema, {'value': 1}) == []
    assert _kinds(validate(schema, {'value': 'x'})) == [('/value', 'TypeMismatch')]


def test_unresolvable_dynamic_ref() -> None:
    errors = validate(parse_schema({'$dynamicRef': '#missing'}), 1)
    assert [(error.keyword, error.kind) for error in errors] == [('$dynamicRef', 'UnresolvedReference')]


def test_resolver_searches_scope_stack() -> None:
    anchored = StringNode(dynamic_anchor='item', min_length=1)
    registry = Registry.build(anchored)
    ctx = ValidationContext(registry=registry, options=ValidationOptions())

    with ctx.in_scope(anchored):
        assert resolve_reference(DynamicRefNode(fragment='#item'), ctx) is anchored
    assert resolve_reference(RefNode(uri='#item'), ctx) is anchored
