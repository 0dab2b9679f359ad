"""
Render schema nodes as JSON Schema 2020-12 documents.

Only keywords with a defined value are emitted: no nulls, no empty containers
(``items`` is always present on arrays since ArrayNode requires it).
"""

from __future__ import annotations

import json
from typing import Any

from schemaforge.config.engine import settings
from schemaforge.schemas.nodes import (
    AnyNode,
    ArrayNode,
    BooleanNode,
    CompositionNode,
    ConditionalNode,
    ConstNode,
    DefsNode,
    DynamicRefNode,
    EnumNode,
    IntegerNode,
    NodeBase,
    NullNode,
    NumberNode,
    ObjectNode,
    RefNode,
    SchemaNode,
    StringNode,
    type_keyword,
)

__all__ = [
    'META_SCHEMA_URL',
    'dumps_schema',
    'to_json_schema',
    'to_json_schema_document',
]

META_SCHEMA_URL = 'https://json-schema.org/draft/2020-12/schema'


def to_json_schema(node: SchemaNode) -> dict[str, Any]:
    """Render ``node`` (recursively) as a JSON Schema object."""
    document: dict[str, Any] = {}
    _put(document, '$id', node.id)
    _put(document, '$anchor', node.anchor)
    _put(document, '$dynamicAnchor', node.dynamic_anchor)
    _put(document, '$comment', node.comment)
    _put(document, 'type', type_keyword(node))
    _put(document, 'title', node.title)
    _put(document, 'description', node.description)

    match node:
        case StringNode():
            _put(document, 'minLength', node.min_length)
            _put(document, 'maxLength', node.max_length)
            _put(document, 'pattern', node.pattern)
            _put(document, 'format', node.format)
            _put(document, 'const', node.const_value)
            _put(document, 'enum', _list_or_none(node.enum_values))
        case NumberNode() | IntegerNode():
            _put(document, 'minimum', node.minimum)
            _put(document, 'maximum', node.maximum)
            _put(document, 'exclusiveMinimum', node.exclusive_minimum)
            _put(document, 'exclusiveMaximum', node.exclusive_maximum)
            _put(document, 'multipleOf', node.multiple_of)
            _put(document, 'const', node.const_value)
            _put(document, 'enum', _list_or_none(node.enum_values))
        case BooleanNode():
            _put(document, 'const', node.const_value)
        case NullNode() | AnyNode():
            pass
        case ArrayNode():
            document['items'] = to_json_schema(node.items)
            _put(document, 'minItems', node.min_items)
            _put(document, 'maxItems', node.max_items)
            _put(document, 'uniqueItems', node.unique_items)
        case ObjectNode():
            _render_object(node, document)
        case CompositionNode(inline=True):
            document = {**_render_inline(node), **document}
        case CompositionNode(combinator='not'):
            document['not'] = to_json_schema(node.branches[0])
        case CompositionNode():
            document[node.combinator] = [to_json_schema(branch) for branch in node.branches]
        case ConditionalNode():
            document['if'] = to_json_schema(node.if_schema)
            if node.then_schema is not None:
                document['then'] = to_json_schema(node.then_schema)
            if node.else_schema is not None:
                document['else'] = to_json_schema(node.else_schema)
        case RefNode():
            document['$ref'] = node.uri
        case DynamicRefNode():
            document['$dynamicRef'] = node.fragment
        case DefsNode():
            if node.underlying is not None:
                # Outer identifiers/metadata win over the underlying schema's
                document = {**to_json_schema(node.underlying), **document}
            if node.definitions:
                document['$defs'] = {name: to_json_schema(child) for name, child in node.definitions.items()}
        case EnumNode():
            document['enum'] = list(node.values)
        case ConstNode():
            document['const'] = node.value
        case _:
            # FAIL FAST: a new variant must be rendered here
            raise ValueError(f'Unhandled schema node: {type(node).__name__}')

    _render_annotations(node, document)
    return document


def to_json_schema_document(node: SchemaNode, *, include_schema_uri: bool | None = None) -> dict[str, Any]:
    """Top-level document - ``to_json_schema`` plus the ``$schema`` dialect URI.

    Args:
        node: Root schema node
        include_schema_uri: Emit ``$schema`` (defaults to the INCLUDE_SCHEMA_URI setting)
    """
    if include_schema_uri is None:
        include_schema_uri = settings.INCLUDE_SCHEMA_URI
    document = to_json_schema(node)
    if include_schema_uri:
        document = {'$schema': META_SCHEMA_URL, **document}
    return document


def dumps_schema(node: SchemaNode, *, indent: int | None = 2, include_schema_uri: bool | None = None) -> str:
    """Serialize a top-level document to a JSON string."""
    return json.dumps(
        to_json_schema_document(node, include_schema_uri=include_schema_uri),
        indent=indent,
        ensure_ascii=False,
    )


# ==============================================================================
# Internals
# ==============================================================================


def _put(document: dict[str, Any], keyword: str, value: Any) -> None:
    if value is not None:
        document[keyword] = value


def _list_or_none(values: tuple[Any, ...] | None) -> list[Any] | None:
    return None if values is None else list(values)


def _render_object(node: ObjectNode, document: dict[str, Any]) -> None:
    if node.properties:
        document['properties'] = {name: to_json_schema(child) for name, child in node.properties.items()}
    if node.required:
        document['required'] = list(node.required)
    match node.additional_properties:
        case None:
            pass
        case bool() as allowed:
            document['additionalProperties'] = allowed
        case schema:
            document['additionalProperties'] = to_json_schema(schema)
    if node.pattern_properties:
        document['patternProperties'] = {
            pattern: to_json_schema(child) for pattern, child in node.pattern_properties.items()
        }
    _put(document, 'minProperties', node.min_properties)
    _put(document, 'maxProperties', node.max_properties)
    if node.dependent_required:
        document['dependentRequired'] = {name: list(names) for name, names in node.dependent_required.items()}
    if node.property_names is not None:
        document['propertyNames'] = to_json_schema(node.property_names)


def _render_inline(node: CompositionNode) -> dict[str, Any]:
    """Merge the keyword groups of an inline composition back into one object (types into a type array)."""
    document: dict[str, Any] = {}
    types: list[str] = []
    for branch in node.branches:
        rendered = to_json_schema(branch)
        match rendered.pop('type', None):
            case None:
                pass
            case str() as name:
                types.append(name)
            case list() as names:
                types.extend(names)
            case other:
                raise ValueError(f'Unexpected type keyword: {other!r}')
        document.update(rendered)
    if types:
        document = {'type': types[0] if len(types) == 1 else types, **document}
    return document


def _render_annotations(node: NodeBase, document: dict[str, Any]) -> None:
    if node.default is not None:
        document['default'] = node.default.value
    if node.examples is not None:
        document['examples'] = list(node.examples)
    _put(document, 'deprecated', node.deprecated)
    _put(document, 'readOnly', node.read_only)
    _put(document, 'writeOnly', node.write_only)
