"""
Tests for loading JSON Schema documents into schema nodes.
"""

from __future__ import annotations

from typing import Any

import pytest

from schemaforge.exceptions import SchemaParseError
from schemaforge.schemas.nodes import (
    AnyNode,
    ArrayNode,
    CompositionNode,
    ConditionalNode,
    ConstNode,
    DefsNode,
    DynamicRefNode,
    EnumNode,
    IntegerNode,
    NullNode,
    NumberNode,
    ObjectNode,
    RefNode,
    StringNode,
)
from schemaforge.schemas.parser import parse_schema
from schemaforge.schemas.serialize import to_json_schema

# ==============================================================================
# Boolean and typed schemas
# ==============================================================================


def test_boolean_schemas() -> None:
    assert parse_schema(True) == AnyNode()
    assert parse_schema({}) == AnyNode()
    rejected = parse_schema(False)
    assert isinstance(rejected, CompositionNode)
    assert rejected.combinator == 'not'
    assert rejected.branches == (AnyNode(),)


def test_typed_string() -> None:
    node = parse_schema({'type': 'string', 'minLength': 1, 'format': 'email', 'title': 'Email'})
    assert node == StringNode(min_length=1, format='email', title='Email')


def test_type_inferred_from_keywords() -> None:
    assert parse_schema({'minimum': 0}) == NumberNode(minimum=0)
    assert parse_schema({'properties': {'a': True}}) == ObjectNode(properties={'a': AnyNode()})
    assert parse_schema({'items': {'type': 'integer'}}) == ArrayNode(items=IntegerNode())


def test_array_without_items_accepts_any_item() -> None:
    assert parse_schema({'type': 'array'}) == ArrayNode(items=AnyNode())


def test_type_array_becomes_any_of() -> None:
    node = parse_schema({'type': ['string', 'null']})
    assert node == CompositionNode(combinator='anyOf', branches=(StringNode(), NullNode()), inline=True)


def test_numeric_keywords_apply_to_integer() -> None:
    assert parse_schema({'type': 'integer', 'maximum': 10}) == IntegerNode(maximum=10)


def test_const_and_enum_fold_into_typed_node() -> None:
    assert parse_schema({'type': 'string', 'enum': ['a', 'b']}) == StringNode(enum_values=('a', 'b'))
    assert parse_schema({'type': 'integer', 'const': 3}) == IntegerNode(const_value=3)


def test_enum_that_does_not_fit_type_stays_separate() -> None:
    node = parse_schema({'type': 'string', 'enum': ['a', 1]})
    assert node == CompositionNode(combinator='allOf', branches=(StringNode(), EnumNode(values=('a', 1))), inline=True)


def test_untyped_enum_and_const() -> None:
    assert parse_schema({'enum': [1, 'a', None]}) == EnumNode(values=(1, 'a', None))
    assert parse_schema({'const': {'a': 1}}) == ConstNode(value={'a': 1})


# ==============================================================================
# Applicators
# ==============================================================================


def test_compositions() -> None:
    node = parse_schema({'oneOf': [{'type': 'string'}, {'type': 'integer'}]})
    assert node == CompositionNode(combinator='oneOf', branches=(StringNode(), IntegerNode()))

    negated = parse_schema({'not': {'type': 'null'}})
    assert negated == CompositionNode(combinator='not', branches=(NullNode(),))


def test_conditional() -> None:
    node = parse_schema({'if': {'type': 'integer'}, 'then': {'minimum': 0}})
    assert node == ConditionalNode(if_schema=IntegerNode(), then_schema=NumberNode(minimum=0))


def test_then_without_if_is_rejected() -> None:
    with pytest.raises(SchemaParseError, match='without "if"'):
        parse_schema({'then': {'type': 'string'}})


def test_typed_keywords_next_to_applicators_combine_with_all_of() -> None:
    node = parse_schema({'type': 'object', 'required': ['a'], '$ref': '#/$defs/Base'})
    assert node == CompositionNode(
        combinator='allOf',
        branches=(ObjectNode(required=('a',)), RefNode(uri='#/$defs/Base')),
        inline=True,
    )


def test_references() -> None:
    assert parse_schema({'$ref': '#/$defs/User'}) == RefNode(uri='#/$defs/User')
    assert parse_schema({'$dynamicRef': '#node'}) == DynamicRefNode(fragment='#node')


def test_metadata_lands_on_single_part() -> None:
    node = parse_schema({'$ref': '#/$defs/User', 'description': 'The owner'})
    assert node == RefNode(uri='#/$defs/User', description='The owner')


# ==============================================================================
# $defs
# ==============================================================================


def test_defs_only_document() -> None:
    node = parse_schema({'$defs': {'Id': {'type': 'integer'}}})
    assert node == DefsNode(definitions={'Id': IntegerNode()})


def test_defs_with_underlying_schema() -> None:
    node = parse_schema(
        {
            '$id': 'https://example.com/user',
            'title': 'User',
            '$ref': '#/$defs/User',
            '$defs': {'User': {'type': 'object'}},
        }
    )
    assert isinstance(node, DefsNode)
    assert node.id == 'https://example.com/user'
    assert node.title == 'User'
    assert node.underlying == RefNode(uri='#/$defs/User')
    assert node.definitions == {'User': ObjectNode()}


# ==============================================================================
# Errors
# ==============================================================================


@pytest.mark.parametrize(
    ('document', 'message'),
    [
        ({'type': 'string', 'unevaluatedProperties': False}, 'unsupported keyword'),
        ({'type': 'strin'}, 'unknown type'),
        ({'type': 'string', 'minimum': 1}, 'do not apply'),
        ({'minLength': 1, 'minimum': 0}, 'several types'),
        ({'enum': []}, 'non-empty array'),
        ({'allOf': []}, 'non-empty array'),
        ({'type': 'string', 'pattern': '('}, 'invalid regular expression'),
        ({'properties': {'a': 3}}, 'object or boolean'),
    ],
    ids=[
        'unknown-keyword',
        'unknown-type',
        'stray-keyword',
        'ambiguous-inference',
        'empty-enum',
        'empty-allOf',
        'bad-pattern',
        'bad-subschema',
    ],
)
def test_malformed_documents(document: dict[str, Any], message: str) -> None:
    with pytest.raises(SchemaParseError, match=message):
        parse_schema(document)


def test_error_reports_location() -> None:
    with pytest.raises(SchemaParseError) as exc_info:
        parse_schema({'properties': {'age': {'type': 'integer', 'multipleOf': -1}}})
    assert exc_info.value.location == '/properties/age'


def test_extension_and_dialect_keywords_are_ignored() -> None:
    node = parse_schema({'$schema': 'https://json-schema.org/draft/2020-12/schema', 'x-internal': 1, 'type': 'null'})
    assert node == NullNode()


# ==============================================================================
# Round trip
# ==============================================================================

ROUND_TRIP_DOCUMENTS = [
    {'type': 'string', 'minLength': 1, 'maxLength': 5, 'pattern': '^a', 'format': 'email'},
    {'type': 'number', 'minimum': 0, 'exclusiveMaximum': 1.5, 'multipleOf': 0.5},
    {'type': 'array', 'items': {'type': 'integer'}, 'minItems': 1, 'uniqueItems': True},
    {
        'type': 'object',
        'properties': {'name': {'type': 'string'}, 'tags': {'type': 'array', 'items': {'type': 'string'}}},
        'required': ['name'],
        'additionalProperties': False,
        'dependentRequired': {'tags': ['name']},
    },
    {'anyOf': [{'type': 'string'}, {'type': 'null'}], 'default': None, 'examples': ['a']},
    {'if': {'type': 'integer'}, 'then': {'type': 'integer', 'minimum': 0}, 'else': {'type': 'string'}},
    {
        '$id': 'https://example.com/tree',
        '$dynamicAnchor': 'node',
        'type': 'object',
        'properties': {'children': {'type': 'array', 'items': {'$dynamicRef': '#node'}}},
    },
    {'type': ['array', 'null'], 'items': {'type': 'integer'}, 'minItems': 1},
    {'type': 'string', 'enum': ['a', 1]},
    {
        'title': 'Mixed',
        'type': 'object',
        'properties': {'a': {'type': 'string'}},
        'required': ['a'],
        'allOf': [{'type': 'object', 'required': ['b']}],
    },
    {
        '$ref': '#/$defs/Node',
        '$defs': {
            'Node': {
                'type': 'object',
                'properties': {'next': {'anyOf': [{'$ref': '#/$defs/Node'}, {'type': 'null'}]}},
            }
        },
    },
]


@pytest.mark.parametrize('document', ROUND_TRIP_DOCUMENTS, ids=lambda d: str(d.get('type', next(iter(d)))))
def test_round_trip(document: dict[str, Any]) -> None:
    """Loading then serializing a document in the supported subset reproduces it."""
    assert to_json_schema(parse_schema(document)) == document
