"""
Load JSON Schema 2020-12 documents into schema nodes.

The node model is narrower than the JSON Schema vocabulary, so loading normalizes:
- ``true`` / ``{}`` become AnyNode, ``false`` becomes ``not {}``
- a ``type`` array becomes anyOf over one typed node per listed type
- type-specific keywords without ``type`` imply that type
- ``enum`` / ``const`` that do not fit the declared type become separate
  EnumNode / ConstNode parts
- several independent parts (typed keywords, enum/const, applicators, $ref)
  are combined with allOf
- compositions built this way are marked inline: their parts keep the
  object's own location, so pointers such as ``#/properties/a`` still resolve
- ``$defs`` next to other keywords becomes a DefsNode over the remaining schema

Unknown keywords fail fast with SchemaParseError. ``$schema``, ``$vocabulary`` and
``x-`` extension keys are ignored.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

import pydantic

from schemaforge.exceptions import SchemaParseError
from schemaforge.json_values import is_integer_value, to_pointer
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
    replace_node,
)
from schemaforge.types import Path

__all__ = [
    'parse_schema',
]

M = TypeVar('M', bound=pydantic.BaseModel)

# ==============================================================================
# Keyword groups
# ==============================================================================

IDENTIFIER_KEYWORDS = {
    '$id': 'id',
    '$anchor': 'anchor',
    '$dynamicAnchor': 'dynamic_anchor',
    '$comment': 'comment',
}
ANNOTATION_KEYWORDS = {
    'title': 'title',
    'description': 'description',
    'deprecated': 'deprecated',
    'readOnly': 'read_only',
    'writeOnly': 'write_only',
}
STRING_KEYWORDS = {
    'minLength': 'min_length',
    'maxLength': 'max_length',
    'pattern': 'pattern',
    'format': 'format',
}
NUMERIC_KEYWORDS = {
    'minimum': 'minimum',
    'maximum': 'maximum',
    'exclusiveMinimum': 'exclusive_minimum',
    'exclusiveMaximum': 'exclusive_maximum',
    'multipleOf': 'multiple_of',
}
ARRAY_KEYWORDS = {
    'minItems': 'min_items',
    'maxItems': 'max_items',
    'uniqueItems': 'unique_items',
}
OBJECT_KEYWORDS = {
    'minProperties': 'min_properties',
    'maxProperties': 'max_properties',
    'dependentRequired': 'dependent_required',
    'required': 'required',
}
OBJECT_SUBSCHEMA_KEYWORDS = {'properties', 'patternProperties', 'additionalProperties', 'propertyNames'}
APPLICATOR_KEYWORDS = {'allOf', 'anyOf', 'oneOf', 'not', 'if', 'then', 'else', '$ref', '$dynamicRef'}
IGNORED_KEYWORDS = {'$schema', '$vocabulary'}
METADATA_KEYWORDS = set(IDENTIFIER_KEYWORDS) | set(ANNOTATION_KEYWORDS) | {'default', 'examples'}

TYPE_NAMES = ('string', 'number', 'integer', 'boolean', 'null', 'array', 'object')

# Keywords that only make sense for one type (drives inference when 'type' is absent)
TYPE_SPECIFIC_KEYWORDS: dict[str, set[str]] = {
    'string': set(STRING_KEYWORDS),
    'number': set(NUMERIC_KEYWORDS),
    'array': set(ARRAY_KEYWORDS) | {'items'},
    'object': set(OBJECT_KEYWORDS) | OBJECT_SUBSCHEMA_KEYWORDS,
}

KNOWN_KEYWORDS = (
    set(IDENTIFIER_KEYWORDS)
    | set(ANNOTATION_KEYWORDS)
    | {'default', 'examples', 'type', 'enum', 'const', '$defs'}
    | APPLICATOR_KEYWORDS
    | IGNORED_KEYWORDS
    | set().union(*TYPE_SPECIFIC_KEYWORDS.values())
)


# ==============================================================================
# Entry point
# ==============================================================================


def parse_schema(document: bool | Mapping[str, Any]) -> SchemaNode:
    """Load a JSON Schema document (already decoded from JSON) into a node tree.

    Raises:
        SchemaParseError: On unknown keywords or malformed keyword values
    """
    return _parse(document, ())


def _parse(document: Any, location: Path) -> SchemaNode:
    match document:
        case True:
            return AnyNode()
        case False:
            return CompositionNode(combinator='not', branches=(AnyNode(),))
        case Mapping():
            return _parse_object(document, location)
        case _:
            raise SchemaParseError(to_pointer(location), f'schema must be an object or boolean, got {document!r}')


def _parse_object(document: Mapping[str, Any], location: Path) -> SchemaNode:
    unknown = [key for key in document if key not in KNOWN_KEYWORDS and not key.startswith('x-')]
    if unknown:
        raise SchemaParseError(to_pointer(location), f'unsupported keyword(s): {", ".join(sorted(unknown))}')

    metadata = _parse_metadata(document, location)

    if '$defs' in document:
        definitions = _parse_definitions(document['$defs'], location)
        rest = {key: value for key, value in document.items() if key != '$defs' and key not in METADATA_KEYWORDS}
        underlying = _parse_body(rest, location, {}) if _has_assertions(rest) else None
        return _build(DefsNode, location, definitions=definitions, underlying=underlying, **metadata)

    return _parse_body(document, location, metadata)


def _parse_body(document: Mapping[str, Any], location: Path, metadata: dict[str, Any]) -> SchemaNode:
    parts = _typed_parts(document, location)
    parts.extend(_applicator_parts(document, location))

    if not parts:
        return _build(AnyNode, location, **metadata)
    if len(parts) == 1:
        return _with_metadata(parts[0], metadata, location)
    return _build(CompositionNode, location, combinator='allOf', branches=tuple(parts), inline=True, **metadata)


def _has_assertions(document: Mapping[str, Any]) -> bool:
    return any(key not in IGNORED_KEYWORDS and not key.startswith('x-') for key in document)


# ==============================================================================
# Metadata
# ==============================================================================


def _parse_metadata(document: Mapping[str, Any], location: Path) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for keyword, field in (IDENTIFIER_KEYWORDS | ANNOTATION_KEYWORDS).items():
        if keyword in document:
            metadata[field] = document[keyword]
    if 'default' in document:
        metadata['default'] = DefaultValue(value=document['default'])
    if 'examples' in document:
        examples = document['examples']
        if not isinstance(examples, list):
            raise SchemaParseError(to_pointer(location + ('examples',)), 'examples must be an array')
        metadata['examples'] = tuple(examples)
    return metadata


def _with_metadata(node: SchemaNode, metadata: dict[str, Any], location: Path) -> SchemaNode:
    if not metadata:
        return node
    try:
        return replace_node(node, **metadata)
    except pydantic.ValidationError as e:
        raise SchemaParseError(to_pointer(location), str(e)) from e


# ==============================================================================
# Typed keywords
# ==============================================================================


def _declared_types(document: Mapping[str, Any], location: Path) -> list[str]:
    if 'type' in document:
        declared = document['type']
        names = [declared] if isinstance(declared, str) else declared
        if not isinstance(names, list) or not names or not all(isinstance(name, str) for name in names):
            raise SchemaParseError(to_pointer(location + ('type',)), f'invalid type {declared!r}')
        for name in names:
            if name not in TYPE_NAMES:
                raise SchemaParseError(to_pointer(location + ('type',)), f'unknown type {name!r}')
        return list(dict.fromkeys(names))

    inferred = [name for name, keywords in TYPE_SPECIFIC_KEYWORDS.items() if keywords & document.keys()]
    if len(inferred) > 1:
        raise SchemaParseError(
            to_pointer(location), f'keywords for several types ({", ".join(inferred)}) without a "type" keyword'
        )
    return inferred


def _typed_parts(document: Mapping[str, Any], location: Path) -> list[SchemaNode]:
    types = _declared_types(document, location)

    for name, keywords in TYPE_SPECIFIC_KEYWORDS.items():
        applicable = {name, 'integer'} if name == 'number' else {name}
        stray = sorted(keywords & document.keys())
        if stray and not applicable & set(types):
            raise SchemaParseError(to_pointer(location), f'keyword(s) {stray} do not apply to type(s) {types}')

    const_present = 'const' in document
    enum_values = document.get('enum')
    if enum_values is not None and (not isinstance(enum_values, list) or not enum_values):
        raise SchemaParseError(to_pointer(location + ('enum',)), 'enum must be a non-empty array')

    typed = [_typed_node(name, document, location) for name in types]

    # const / enum fold into a single typed node when every value fits its type
    parts: list[SchemaNode] = []
    if len(typed) == 1 and (const_present or enum_values is not None):
        fits = _value_fitter(types[0])
        node = typed[0]
        changes: dict[str, Any] = {}
        if const_present and fits is not None and fits(document['const']):
            changes['const_value'] = document['const']
            const_present = False
        if enum_values is not None and fits is not None and types[0] != 'boolean' and all(map(fits, enum_values)):
            changes['enum_values'] = tuple(enum_values)
            enum_values = None
        typed[0] = _with_metadata(node, changes, location) if changes else node

    if len(typed) == 1:
        parts.append(typed[0])
    elif typed:
        parts.append(CompositionNode(combinator='anyOf', branches=tuple(typed), inline=True))

    if enum_values is not None:
        parts.append(EnumNode(values=tuple(enum_values)))
    if const_present:
        parts.append(ConstNode(value=document['const']))
    return parts


def _value_fitter(type_name: str) -> Callable[[Any], bool] | None:
    match type_name:
        case 'string':
            return lambda value: isinstance(value, str)
        case 'number':
            return lambda value: isinstance(value, (int, float)) and not isinstance(value, bool)
        case 'integer':
            return is_integer_value
        case 'boolean':
            return lambda value: isinstance(value, bool)
        case 'null' | 'array' | 'object':
            return None
        case _:
            raise ValueError(f'Unhandled type name: {type_name}')


def _typed_node(type_name: str, document: Mapping[str, Any], location: Path) -> SchemaNode:
    match type_name:
        case 'string':
            return _build(StringNode, location, **_collect(document, STRING_KEYWORDS))
        case 'number':
            return _build(NumberNode, location, **_collect(document, NUMERIC_KEYWORDS))
        case 'integer':
            return _build(IntegerNode, location, **_collect(document, NUMERIC_KEYWORDS))
        case 'boolean':
            return BooleanNode()
        case 'null':
            return NullNode()
        case 'array':
            items = _parse(document['items'], location + ('items',)) if 'items' in document else AnyNode()
            return _build(ArrayNode, location, items=items, **_collect(document, ARRAY_KEYWORDS))
        case 'object':
            return _parse_object_type(document, location)
        case _:
            raise ValueError(f'Unhandled type name: {type_name}')


def _parse_object_type(document: Mapping[str, Any], location: Path) -> ObjectNode:
    fields = _collect(document, OBJECT_KEYWORDS)
    if 'properties' in document:
        fields['properties'] = _parse_schema_map(document['properties'], location + ('properties',))
    if 'patternProperties' in document:
        fields['pattern_properties'] = _parse_schema_map(
            document['patternProperties'], location + ('patternProperties',)
        )
    if 'additionalProperties' in document:
        additional = document['additionalProperties']
        # Boolean stays boolean: false rejects, true allows
        fields['additional_properties'] = (
            additional if isinstance(additional, bool) else _parse(additional, location + ('additionalProperties',))
        )
    if 'propertyNames' in document:
        fields['property_names'] = _parse(document['propertyNames'], location + ('propertyNames',))
    return _build(ObjectNode, location, **fields)


def _collect(document: Mapping[str, Any], keywords: dict[str, str]) -> dict[str, Any]:
    return {field: document[keyword] for keyword, field in keywords.items() if keyword in document}


# ==============================================================================
# Applicators, references and definitions
# ==============================================================================


def _applicator_parts(document: Mapping[str, Any], location: Path) -> list[SchemaNode]:
    parts: list[SchemaNode] = []
    for combinator in ('allOf', 'anyOf', 'oneOf'):
        if combinator in document:
            branches = document[combinator]
            if not isinstance(branches, list) or not branches:
                raise SchemaParseError(to_pointer(location + (combinator,)), f'{combinator} must be a non-empty array')
            parsed = tuple(_parse(branch, location + (combinator, index)) for index, branch in enumerate(branches))
            parts.append(CompositionNode(combinator=combinator, branches=parsed))
    if 'not' in document:
        parts.append(CompositionNode(combinator='not', branches=(_parse(document['not'], location + ('not',)),)))

    if 'if' in document:
        parts.append(
            ConditionalNode(
                if_schema=_parse(document['if'], location + ('if',)),
                then_schema=_parse(document['then'], location + ('then',)) if 'then' in document else None,
                else_schema=_parse(document['else'], location + ('else',)) if 'else' in document else None,
            )
        )
    elif 'then' in document or 'else' in document:
        raise SchemaParseError(to_pointer(location), '"then"/"else" without "if"')

    if '$ref' in document:
        parts.append(_build(RefNode, location + ('$ref',), uri=document['$ref']))
    if '$dynamicRef' in document:
        parts.append(_build(DynamicRefNode, location + ('$dynamicRef',), fragment=document['$dynamicRef']))
    return parts


def _parse_schema_map(value: Any, location: Path) -> dict[str, SchemaNode]:
    if not isinstance(value, Mapping):
        raise SchemaParseError(to_pointer(location), 'expected an object of schemas')
    return {name: _parse(child, location + (name,)) for name, child in value.items()}


def _parse_definitions(value: Any, location: Path) -> dict[str, SchemaNode]:
    return _parse_schema_map(value, location + ('$defs',))


def _build(model: type[M], location: Path, **fields: Any) -> M:
    """Construct a node, reporting field validation failures at the schema location."""
    try:
        return model(**fields)
    except pydantic.ValidationError as e:
        raise SchemaParseError(to_pointer(location), str(e)) from e
