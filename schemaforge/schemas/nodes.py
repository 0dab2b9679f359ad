"""
Schema node model - a typed, immutable tree of JSON Schema 2020-12 keyword groups.

Each variant is a frozen pydantic model tagged by ``kind``; SchemaNode is the
discriminated union over all of them. The serialized ``type`` keyword follows
from the variant, so a node can never disagree with its own type.

Variant map (kind → keywords):
  string       minLength, maxLength, pattern, format, const, enum
  number       minimum, maximum, exclusiveMinimum, exclusiveMaximum, multipleOf, const, enum
  integer      (same as number)
  boolean      const
  null         -
  array        items, minItems, maxItems, uniqueItems
  object       properties, required, additionalProperties, patternProperties,
               minProperties, maxProperties, dependentRequired, propertyNames
  composition  allOf | anyOf | oneOf | not
  conditional  if, then, else
  ref          $ref
  dynamic_ref  $dynamicRef
  defs         $defs (optionally merged with an underlying schema)
  enum         enum (untyped)
  const        const (untyped)
  any          {} / true

Every variant also carries metadata (title, description, examples, deprecated,
readOnly, writeOnly, default) and core identifiers ($id, $anchor,
$dynamicAnchor, $comment).
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Annotated, Any, Literal, TypeVar

import pydantic
from pydantic import NonNegativeInt

from schemaforge.base_model import NodeModel
from schemaforge.types import JsonValue, PathSegment

__all__ = [
    'AnyNode',
    'ArrayNode',
    'BooleanNode',
    'Combinator',
    'CompositionNode',
    'ConditionalNode',
    'ConstNode',
    'DefaultValue',
    'DefsNode',
    'DynamicRefNode',
    'EnumNode',
    'IntegerNode',
    'NodeBase',
    'NullNode',
    'NumberNode',
    'ObjectNode',
    'RefNode',
    'SchemaNode',
    'StringNode',
    'iter_subschemas',
    'nullable',
    'replace_node',
    'type_keyword',
    'with_default',
    'with_description',
    'with_title',
]

# $anchor / $dynamicAnchor plain-name grammar
ANCHOR_PATTERN = re.compile(r'^[A-Za-z_][-A-Za-z0-9._]*$')

type Combinator = Literal['allOf', 'anyOf', 'oneOf', 'not']


N = TypeVar('N', bound='NodeBase')


def _check_pattern(pattern: str) -> str:
    try:
        re.compile(pattern)
    except re.error as e:
        raise ValueError(f'invalid regular expression {pattern!r}: {e}') from e
    return pattern


# ==============================================================================
# Shared metadata
# ==============================================================================


class DefaultValue(NodeModel):
    """Wrapped ``default`` - keeps JSON null distinguishable from "no default"."""

    value: JsonValue


class NodeBase(NodeModel):
    """Metadata and identifiers shared by every schema node."""

    # Annotations
    title: str | None = None
    description: str | None = None
    examples: tuple[JsonValue, ...] | None = None
    deprecated: bool | None = None
    read_only: bool | None = None
    write_only: bool | None = None
    default: DefaultValue | None = None

    # Core identifiers
    comment: str | None = None
    id: str | None = None
    anchor: str | None = None
    dynamic_anchor: str | None = None

    @pydantic.field_validator('anchor', 'dynamic_anchor')
    @classmethod
    def validate_anchor_name(cls, v: str | None) -> str | None:
        if v is not None and not ANCHOR_PATTERN.match(v):
            raise ValueError(f'invalid anchor name {v!r}')
        return v


# ==============================================================================
# Primitive variants
# ==============================================================================


class StringNode(NodeBase):
    """String schema (type="string")."""

    kind: Literal['string'] = 'string'
    min_length: NonNegativeInt | None = None
    max_length: NonNegativeInt | None = None
    pattern: str | None = None
    format: str | None = None
    const_value: str | None = None
    enum_values: tuple[str, ...] | None = None

    @pydantic.field_validator('pattern')
    @classmethod
    def validate_pattern(cls, v: str | None) -> str | None:
        """Patterns must compile at construction time."""
        return None if v is None else _check_pattern(v)


class _NumericNode(NodeBase):
    """Numeric constraints shared by number and integer schemas."""

    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: int | float | None = None
    exclusive_maximum: int | float | None = None
    multiple_of: int | float | None = None
    const_value: int | float | None = None
    enum_values: tuple[int | float, ...] | None = None

    @pydantic.field_validator('multiple_of')
    @classmethod
    def validate_multiple_of(cls, v: int | float | None) -> int | float | None:
        if v is not None and v <= 0:
            raise ValueError('multipleOf must be strictly greater than 0')
        return v


class NumberNode(_NumericNode):
    """Number schema (type="number")."""

    kind: Literal['number'] = 'number'


class IntegerNode(_NumericNode):
    """Integer schema (type="integer") - integral floats such as 1.0 conform."""

    kind: Literal['integer'] = 'integer'


class BooleanNode(NodeBase):
    kind: Literal['boolean'] = 'boolean'
    const_value: bool | None = None


class NullNode(NodeBase):
    kind: Literal['null'] = 'null'


# ==============================================================================
# Structural variants
# ==============================================================================


class ArrayNode(NodeBase):
    """Array schema (type="array") - ``items`` applies to every element."""

    kind: Literal['array'] = 'array'
    items: SchemaNode
    min_items: NonNegativeInt | None = None
    max_items: NonNegativeInt | None = None
    unique_items: bool | None = None


class ObjectNode(NodeBase):
    """Object schema (type="object").

    ``additional_properties`` is a schema for undeclared keys, ``False`` to reject
    them, or ``True``/``None`` to allow them unchecked. Declaration order of
    ``properties`` is preserved through serialization.
    """

    kind: Literal['object'] = 'object'
    properties: dict[str, SchemaNode] = pydantic.Field(default_factory=dict)
    required: tuple[str, ...] = ()
    additional_properties: SchemaNode | bool | None = None
    pattern_properties: dict[str, SchemaNode] = pydantic.Field(default_factory=dict)
    min_properties: NonNegativeInt | None = None
    max_properties: NonNegativeInt | None = None
    dependent_required: dict[str, tuple[str, ...]] = pydantic.Field(default_factory=dict)
    property_names: SchemaNode | None = None

    @pydantic.field_validator('required')
    @classmethod
    def validate_required_unique(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        duplicates = sorted({name for name in v if v.count(name) > 1})
        if duplicates:
            raise ValueError(f'required names must be unique, duplicated: {duplicates}')
        return v

    @pydantic.field_validator('pattern_properties')
    @classmethod
    def validate_pattern_keys(cls, v: dict[str, Any]) -> dict[str, Any]:
        for pattern in v:
            _check_pattern(pattern)
        return v


# ==============================================================================
# Applicator variants
# ==============================================================================


class CompositionNode(NodeBase):
    """allOf / anyOf / oneOf over one or more branches, or ``not`` over exactly one.

    ``inline`` marks a composition the loader built from the keyword groups of one
    schema object (a ``type`` array, typed keywords next to applicators). Its
    branches share the object's location and serialize back into that object.
    """

    kind: Literal['composition'] = 'composition'
    combinator: Combinator
    branches: tuple[SchemaNode, ...]
    inline: bool = False

    @pydantic.model_validator(mode='after')
    def validate_branch_count(self) -> CompositionNode:
        if self.combinator == 'not' and len(self.branches) != 1:
            raise ValueError(f"'not' takes exactly one branch, got {len(self.branches)}")
        if not self.branches:
            raise ValueError(f"'{self.combinator}' needs at least one branch")
        if self.inline and self.combinator not in ('allOf', 'anyOf'):
            raise ValueError(f"only allOf and anyOf can be inline, got '{self.combinator}'")
        return self


class ConditionalNode(NodeBase):
    """if / then / else - the ``if`` outcome only selects a branch."""

    kind: Literal['conditional'] = 'conditional'
    if_schema: SchemaNode
    then_schema: SchemaNode | None = None
    else_schema: SchemaNode | None = None


class RefNode(NodeBase):
    """Static reference ($ref) - resolved against the base URI of its resource."""

    kind: Literal['ref'] = 'ref'
    uri: str


class DynamicRefNode(NodeBase):
    """Dynamic reference ($dynamicRef), e.g. ``#node``."""

    kind: Literal['dynamic_ref'] = 'dynamic_ref'
    fragment: str

    @property
    def anchor_name(self) -> str:
        """Plain-name part after '#' (the $dynamicAnchor being looked up)."""
        return self.fragment.rpartition('#')[2]


class DefsNode(NodeBase):
    """Named schemas under $defs.

    With ``underlying`` set, the underlying schema's keywords are rendered into the
    same JSON object and validation delegates to it. Without it, the node is a
    plain holder of definitions and accepts every value.
    """

    kind: Literal['defs'] = 'defs'
    definitions: dict[str, SchemaNode] = pydantic.Field(default_factory=dict)
    underlying: SchemaNode | None = None


# ==============================================================================
# Untyped variants
# ==============================================================================


class EnumNode(NodeBase):
    """enum without a type - values may mix JSON kinds."""

    kind: Literal['enum'] = 'enum'
    values: tuple[JsonValue, ...] = pydantic.Field(min_length=1)


class ConstNode(NodeBase):
    kind: Literal['const'] = 'const'
    value: JsonValue


class AnyNode(NodeBase):
    """Accepts every value ({} or true)."""

    kind: Literal['any'] = 'any'


# ==============================================================================
# Union
# ==============================================================================

SchemaNode = Annotated[
    StringNode
    | NumberNode
    | IntegerNode
    | BooleanNode
    | NullNode
    | ArrayNode
    | ObjectNode
    | CompositionNode
    | ConditionalNode
    | RefNode
    | DynamicRefNode
    | DefsNode
    | EnumNode
    | ConstNode
    | AnyNode,
    pydantic.Discriminator('kind'),
]

for _model in (ArrayNode, ObjectNode, CompositionNode, ConditionalNode, DefsNode):
    _model.model_rebuild()

# ==============================================================================
# Helpers
# ==============================================================================


def type_keyword(node: SchemaNode) -> str | None:
    """The ``type`` keyword implied by the variant, or None for untyped variants."""
    match node:
        case StringNode():
            return 'string'
        case NumberNode():
            return 'number'
        case IntegerNode():
            return 'integer'
        case BooleanNode():
            return 'boolean'
        case NullNode():
            return 'null'
        case ArrayNode():
            return 'array'
        case ObjectNode():
            return 'object'
        case (
            CompositionNode()
            | ConditionalNode()
            | RefNode()
            | DynamicRefNode()
            | DefsNode()
            | EnumNode()
            | ConstNode()
            | AnyNode()
        ):
            return None
        case _:
            # FAIL FAST: a new variant must be mapped here
            raise ValueError(f'Unhandled schema node: {type(node).__name__}')


def replace_node(node: N, **changes: Any) -> N:
    """Copy of ``node`` with ``changes`` applied - re-validated, unchanged subtrees shared."""
    return type(node)(**{**dict(node), **changes})


def with_title(node: N, title: str) -> N:
    return replace_node(node, title=title)


def with_description(node: N, description: str) -> N:
    return replace_node(node, description=description)


def with_default(node: N, value: JsonValue) -> N:
    return replace_node(node, default=DefaultValue(value=value))


def nullable(node: SchemaNode) -> CompositionNode:
    """``node`` or null."""
    return CompositionNode(combinator='anyOf', branches=(node, NullNode()))


def iter_subschemas(node: SchemaNode) -> Iterator[tuple[tuple[PathSegment, ...], SchemaNode]]:
    """Yield ``(relative keyword path, child)`` for every direct subschema.

    The relative path is the JSON-Pointer location of the child inside ``node``'s
    serialized form, e.g. ``('properties', 'name')`` or ``('anyOf', 1)``. The
    underlying schema of a DefsNode and the branches of an inline composition share
    their parent's location, so their path is empty.
    """
    match node:
        case ArrayNode():
            yield ('items',), node.items
        case ObjectNode():
            for name, child in node.properties.items():
                yield ('properties', name), child
            for pattern, child in node.pattern_properties.items():
                yield ('patternProperties', pattern), child
            if not isinstance(node.additional_properties, (bool, type(None))):
                yield ('additionalProperties',), node.additional_properties
            if node.property_names is not None:
                yield ('propertyNames',), node.property_names
        case CompositionNode(inline=True):
            for branch in node.branches:
                yield (), branch
        case CompositionNode(combinator='not'):
            yield ('not',), node.branches[0]
        case CompositionNode():
            for index, branch in enumerate(node.branches):
                yield (node.combinator, index), branch
        case ConditionalNode():
            yield ('if',), node.if_schema
            if node.then_schema is not None:
                yield ('then',), node.then_schema
            if node.else_schema is not None:
                yield ('else',), node.else_schema
        case DefsNode():
            if node.underlying is not None:
                yield (), node.underlying
            for name, child in node.definitions.items():
                yield ('$defs', name), child
        case (
            StringNode()
            | NumberNode()
            | IntegerNode()
            | BooleanNode()
            | NullNode()
            | RefNode()
            | DynamicRefNode()
            | EnumNode()
            | ConstNode()
            | AnyNode()
        ):
            return
        case _:
            # FAIL FAST: a new variant must declare its children here
            raise ValueError(f'Unhandled schema node: {type(node).__name__}')
