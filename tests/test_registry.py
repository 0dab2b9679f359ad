"""
Tests for the schema registry - pointer, anchor and resource lookups.
"""

from __future__ import annotations

import pytest

from schemaforge.exceptions import DuplicateAnchorError, UnresolvedReferenceError
from schemaforge.registry import Registry
from schemaforge.schemas.nodes import DefsNode, IntegerNode, StringNode
from schemaforge.schemas.parser import parse_schema


def test_pointer_lookup_for_defs() -> None:
    root = parse_schema({'$defs': {'User': {'type': 'object'}, 'Id': {'type': 'integer'}}})
    registry = Registry.build(root)

    assert registry.lookup_pointer('') is root
    assert registry.lookup_pointer('/$defs/Id') == IntegerNode()
    assert registry.lookup_pointer('/$defs/Missing') is None


def test_nested_defs_pointers() -> None:
    root = parse_schema(
        {
            '$defs': {
                'Outer': {
                    'type': 'object',
                    'properties': {'inner': {'$ref': '#/$defs/Outer/$defs/Inner'}},
                    '$defs': {'Inner': {'type': 'string'}},
                }
            }
        }
    )
    registry = Registry.build(root)

    assert isinstance(registry.lookup_pointer('/$defs/Outer'), DefsNode)
    assert registry.lookup_pointer('/$defs/Outer/$defs/Inner') == StringNode()
    assert registry.lookup_pointer('/$defs/Outer/properties/inner') is not None


def test_pointers_follow_the_document_through_loader_compositions() -> None:
    root = parse_schema(
        {
            'type': 'object',
            'properties': {'tags': {'type': ['array', 'null'], 'items': {'type': 'string'}}},
            'allOf': [{'required': ['tags']}],
        }
    )
    registry = Registry.build(root)

    assert registry.lookup_pointer('') is root
    assert registry.lookup_pointer('/properties/tags/items') == StringNode()
    assert registry.lookup_pointer('/allOf/0') is not None
    assert registry.lookup_pointer('/allOf/0/properties/tags') is None


def test_pointer_escaping() -> None:
    root = parse_schema({'properties': {'a/b': {'type': 'string'}, 'c~d': {'type': 'integer'}}})
    registry = Registry.build(root)

    assert registry.lookup_pointer('/properties/a~1b') == StringNode()
    assert registry.lookup_pointer('/properties/c~0d') == IntegerNode()


def test_percent_encoded_fragment() -> None:
    root = parse_schema({'$defs': {'My Type': {'type': 'string'}}})
    registry = Registry.build(root)
    assert registry.lookup('#/$defs/My%20Type', '') == StringNode()


def test_anchors_and_dynamic_anchors() -> None:
    root = parse_schema(
        {
            '$defs': {
                'a': {'$anchor': 'plain', 'type': 'string'},
                'b': {'$dynamicAnchor': 'meta', 'type': 'integer'},
            }
        }
    )
    registry = Registry.build(root)

    assert registry.lookup_anchor('plain') == StringNode(anchor='plain')
    assert registry.lookup('#meta', '') == IntegerNode(dynamic_anchor='meta')
    assert ('', 'meta') in registry.dynamic_anchors
    assert ('', 'plain') not in registry.dynamic_anchors


def test_duplicate_anchor_in_one_resource() -> None:
    root = parse_schema(
        {
            '$defs': {
                'a': {'$anchor': 'x', 'type': 'string'},
                'b': {'$anchor': 'x', 'type': 'integer'},
            }
        }
    )
    with pytest.raises(DuplicateAnchorError):
        Registry.build(root)


def test_same_anchor_in_different_resources() -> None:
    root = parse_schema(
        {
            '$id': 'https://example.com/root',
            '$defs': {
                'a': {'$id': 'a.json', '$anchor': 'x', 'type': 'string'},
                'b': {'$id': 'b.json', '$anchor': 'x', 'type': 'integer'},
            },
        }
    )
    registry = Registry.build(root)
    assert registry.lookup('a.json#x', 'https://example.com/root').kind == 'string'
    assert registry.lookup('b.json#x', 'https://example.com/root').kind == 'integer'


def test_embedded_resources_get_their_own_base() -> None:
    root = parse_schema(
        {
            '$id': 'https://example.com/schemas/root',
            '$defs': {'item': {'$id': 'item', 'type': 'object', 'properties': {'n': {'type': 'integer'}}}},
        }
    )
    registry = Registry.build(root)
    item = registry.lookup_pointer('/$defs/item', 'https://example.com/schemas/root')

    assert item is not None
    assert set(registry.resources) == {'https://example.com/schemas/root', 'https://example.com/schemas/item'}
    assert registry.base_of(item) == 'https://example.com/schemas/item'
    assert registry.lookup('https://example.com/schemas/item#/properties/n', '') == IntegerNode()
    assert registry.lookup('item', 'https://example.com/schemas/root') is item


def test_external_roots() -> None:
    external = parse_schema({'$defs': {'Name': {'type': 'string', 'minLength': 1}}})
    root = parse_schema({'$ref': 'https://example.com/common#/$defs/Name'})
    registry = Registry.build(root, {'https://example.com/common': external})

    assert registry.lookup('https://example.com/common#/$defs/Name', '') == StringNode(min_length=1)


@pytest.mark.parametrize(
    'reference',
    ['#/$defs/Missing', '#nowhere', 'https://example.com/unregistered'],
    ids=['pointer', 'anchor', 'remote'],
)
def test_unresolved_lookups(reference: str) -> None:
    registry = Registry.build(parse_schema({'$defs': {'A': {'type': 'string'}}}))
    with pytest.raises(UnresolvedReferenceError):
        registry.lookup(reference, '')


def test_registry_tables_are_read_only() -> None:
    registry = Registry.build(parse_schema({'type': 'string'}))
    with pytest.raises(TypeError):
        registry.pointers[('', '/x')] = StringNode()  # type: ignore[index]
