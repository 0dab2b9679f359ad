"""
Schema node model, serialization and document loading.

- nodes: the immutable SchemaNode tagged union and node helpers
- serialize: nodes → JSON Schema 2020-12 documents
- parser: JSON Schema documents → nodes
"""

from __future__ import annotations

from schemaforge.schemas.nodes import (
    AnyNode,
    ArrayNode,
    BooleanNode,
    CompositionNode,
    ConditionalNode,
    ConstNode,
    DefaultValue,
    DefsNode,
    DynamicRefNode,
    EnumNode,
    IntegerNode,
    NullNode,
    NumberNode,
    ObjectNode,
    RefNode,
    SchemaNode,
    StringNode,
    iter_subschemas,
    nullable,
    replace_node,
    with_default,
    with_description,
    with_title,
)
from schemaforge.schemas.parser import parse_schema
from schemaforge.schemas.serialize import META_SCHEMA_URL, dumps_schema, to_json_schema, to_json_schema_document

__all__ = [
    # Nodes
    'AnyNode',
    'ArrayNode',
    'BooleanNode',
    'CompositionNode',
    'ConditionalNode',
    'ConstNode',
    'DefaultValue',
    'DefsNode',
    'DynamicRefNode',
    'EnumNode',
    'IntegerNode',
    'NullNode',
    'NumberNode',
    'ObjectNode',
    'RefNode',
    'SchemaNode',
    'StringNode',
    # Helpers
    'iter_subschemas',
    'nullable',
    'replace_node',
    'with_default',
    'with_description',
    'with_title',
    # Serialization
    'META_SCHEMA_URL',
    'dumps_schema',
    'parse_schema',
    'to_json_schema',
    'to_json_schema_document',
]
