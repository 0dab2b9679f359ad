"""
Schema derivation - native Python types to schema nodes.

Mapping rules:
  str / int / float, Decimal / bool / None      string / integer / number / boolean / null
  datetime / date / time / UUID                 string with format date-time / date / time / uuid
  Any, object                                   {} (accepts everything)
  Enum subclass                                 string enum of member names
  Literal[...]                                  const / enum (typed when all values share a kind)
  list, Sequence, tuple[T, ...]                 array
  set, frozenset, AbstractSet                   array with uniqueItems
  dict / Mapping with string keys               object with additionalProperties
  record (dataclass, pydantic, attrs, ...)      object with properties / required
  union of two or more records                  oneOf with a required string discriminator
  any other union                               anyOf (T | None becomes anyOf[T, null])

Recursive records and recursive type aliases are emitted once under ``$defs``
and referenced with ``$ref``; the root schema is then wrapped in a DefsNode.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import functools
import inspect
import threading
import types
import uuid
from collections import abc
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeAliasType, get_args, get_origin

import attrs
import pydantic
from pydantic_core import PydanticSerializationError, to_jsonable_python

from schemaforge.annotations import Default, Discriminated, FieldAnnotation, apply_annotations, collect_annotations
from schemaforge.config.engine import settings
from schemaforge.derivation.introspection import (
    NO_DEFAULT,
    RecordField,
    is_record_type,
    is_sequence_of_records,
    record_fields,
    type_name,
    union_members,
    unwrap_annotated,
)
from schemaforge.exceptions import (
    AmbiguousDiscriminatorError,
    IncompatibleAnnotationError,
    NonStringMapKeyError,
    UnsupportedTypeError,
)
from schemaforge.json_values import to_pointer
from schemaforge.protocols import LoggerProtocol, NullLogger
from schemaforge.schemas.nodes import (
    AnyNode,
    ArrayNode,
    BooleanNode,
    CompositionNode,
    ConstNode,
    DefaultValue,
    DefsNode,
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

__all__ = [
    'SchemaDeriver',
    'default_deriver',
    'derive_schema',
]

# Exact-type mapping for scalars (bool is not looked up through int)
SCALAR_SCHEMAS: dict[Any, Callable[[], SchemaNode]] = {
    str: StringNode,
    int: IntegerNode,
    float: NumberNode,
    decimal.Decimal: NumberNode,
    bool: BooleanNode,
    types.NoneType: NullNode,
    datetime.datetime: lambda: StringNode(format='date-time'),
    datetime.date: lambda: StringNode(format='date'),
    datetime.time: lambda: StringNode(format='time'),
    uuid.UUID: lambda: StringNode(format='uuid'),
}

SEQUENCE_ORIGINS = (list, abc.Sequence, abc.MutableSequence, abc.Iterable, abc.Collection)
SET_ORIGINS = (set, frozenset, abc.Set, abc.MutableSet)
MAPPING_ORIGINS = (dict, abc.Mapping, abc.MutableMapping)
UNSUPPORTED_SCALARS = (bytes, bytearray, memoryview, complex)


@dataclass(frozen=True, slots=True)
class _VariantTag:
    """Discriminator entry for one branch of a record sum type."""

    property: str
    value: str
    injected: bool  # True: property added by the deriver, False: record declares it as a Literal


# ==============================================================================
# Public API
# ==============================================================================


@attrs.define
class SchemaDeriver:
    """Derives (and memoizes) schemas for native types.

    One deriver caches one schema per type identity; the first call derives, later
    calls return the same node object. Safe to share across threads.

    Attributes:
        discriminator: Property name injected into record sum type branches
        logger: Receives derivation diagnostics (skipped defaults, cache misses)
    """

    discriminator: str = attrs.field(factory=lambda: settings.DISCRIMINATOR_PROPERTY)
    logger: LoggerProtocol = attrs.field(factory=NullLogger)
    _cache: dict[Hashable, SchemaNode] = attrs.field(factory=dict, init=False, repr=False)
    _lock: threading.RLock = attrs.field(factory=threading.RLock, init=False, repr=False)

    def derive(self, tp: Any) -> SchemaNode:
        """Schema for ``tp``.

        Raises:
            UnsupportedTypeError: No mapping exists (fixed tuples, bytes, unresolved forward refs)
            IncompatibleAnnotationError: A constraint does not fit its base type
            NonStringMapKeyError: A mapping is keyed by a non-string type
            AmbiguousDiscriminatorError: Sum type variants share a discriminator value
        """
        key = _cache_key(tp)
        with self._lock:
            if key is not None and key in self._cache:
                return self._cache[key]
            node = _DerivationRun(self.discriminator, self.logger).derive_root(tp)
            if key is not None:
                self._cache[key] = node
            self.logger.info(f'Derived schema for {type_name(tp)}')
            return node

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()


@functools.cache
def default_deriver() -> SchemaDeriver:
    """Process-wide deriver configured from settings (created on first use)."""
    return SchemaDeriver()


def derive_schema(tp: Any) -> SchemaNode:
    """Derive the schema for ``tp`` with the process-wide deriver."""
    return default_deriver().derive(tp)


def _cache_key(tp: Any) -> Hashable | None:
    """``tp`` itself when hashable (types and most typing forms), else None (not cached)."""
    try:
        hash(tp)
    except TypeError:
        return None
    return tp


# ==============================================================================
# Derivation run
# ==============================================================================


class _DerivationRun:
    """State for deriving one root type: recursion tracking and collected $defs."""

    def __init__(self, discriminator: str, logger: LoggerProtocol) -> None:
        self.discriminator = discriminator
        self.logger = logger
        self.in_progress: dict[Hashable, str] = {}
        self.recursive: set[Hashable] = set()
        self.names: dict[Hashable, str] = {}
        self.definitions: dict[str, SchemaNode] = {}

    def derive_root(self, tp: Any) -> SchemaNode:
        node = self.derive(tp)
        if self.definitions:
            return DefsNode(definitions=self.definitions, underlying=node)
        return node

    def derive(self, tp: Any, extra_metadata: Sequence[Any] = (), tag: _VariantTag | None = None) -> SchemaNode:
        """Schema for ``tp`` with Annotated metadata (and ``extra_metadata``) applied."""
        if isinstance(tp, TypeAliasType) and not extra_metadata and tag is None:
            return self._named(
                (tp, None),
                tp.__name__,
                lambda: self.derive(tp.__value__),
            )

        base, metadata = unwrap_annotated(tp)
        annotations = collect_annotations([*metadata, *extra_metadata])

        discriminator = self.discriminator
        constraints: list[FieldAnnotation] = []
        for annotation in annotations:
            if isinstance(annotation, Discriminated):
                if not _is_record_union(base):
                    raise IncompatibleAnnotationError(annotation, type_name(base), 'only unions of record types')
                discriminator = annotation.property
            else:
                constraints.append(annotation)

        node = self._derive_base(base, discriminator, tag)
        return apply_annotations(node, constraints)

    # --------------------------------------------------------------------------
    # Dispatch
    # --------------------------------------------------------------------------

    def _derive_base(self, tp: Any, discriminator: str, tag: _VariantTag | None) -> SchemaNode:
        if tag is not None:
            return self._record(tp, tag)
        if tp is Any or tp is object:
            return AnyNode()
        if tp is None:
            return NullNode()
        if tp in SCALAR_SCHEMAS:
            return SCALAR_SCHEMAS[tp]()
        if inspect.isclass(tp) and issubclass(tp, enum.Enum):
            return StringNode(enum_values=tuple(member.name for member in tp))

        origin = get_origin(tp)
        if origin is Literal:
            return _literal(get_args(tp))
        if union_members(tp) is not None:
            return self._union(tp, discriminator)
        if origin is tuple or tp is tuple:
            return self._tuple(tp)
        if origin in SEQUENCE_ORIGINS or tp in (list, abc.Sequence):
            return ArrayNode(items=self._item_schema(tp))
        if origin in SET_ORIGINS or tp in (set, frozenset):
            return ArrayNode(items=self._item_schema(tp), unique_items=True)
        if origin in MAPPING_ORIGINS or tp in (dict, abc.Mapping):
            return self._mapping(tp)

        if inspect.isclass(tp):
            if issubclass(tp, UNSUPPORTED_SCALARS):
                raise UnsupportedTypeError(tp, 'binary and complex values have no JSON representation')
            if is_record_type(tp):
                return self._record(tp, None)
            # str / int / float subclasses without record structure
            for scalar in (bool, str, int, float):
                if issubclass(tp, scalar):
                    return SCALAR_SCHEMAS[scalar]()
        raise UnsupportedTypeError(tp)

    # --------------------------------------------------------------------------
    # Collections
    # --------------------------------------------------------------------------

    def _item_schema(self, tp: Any) -> SchemaNode:
        args = get_args(tp)
        return self.derive(args[0]) if args else AnyNode()

    def _tuple(self, tp: Any) -> SchemaNode:
        args = get_args(tp)
        if not args:
            return ArrayNode(items=AnyNode())
        if len(args) == 2 and args[1] is Ellipsis:
            return ArrayNode(items=self.derive(args[0]))
        raise UnsupportedTypeError(tp, 'fixed-length tuples are not supported, use tuple[T, ...]')

    def _mapping(self, tp: Any) -> SchemaNode:
        args = get_args(tp)
        if not args:
            return ObjectNode()
        key_type, value_type = args
        property_names = _key_names(tp, key_type)
        return ObjectNode(additional_properties=self.derive(value_type), property_names=property_names)

    # --------------------------------------------------------------------------
    # Unions
    # --------------------------------------------------------------------------

    def _union(self, tp: Any, discriminator: str) -> SchemaNode:
        members = union_members(tp) or ()
        non_null = [member for member in members if member is not types.NoneType]
        has_null = len(non_null) < len(members)

        if is_sequence_of_records(non_null):
            core = self._sum_type(non_null, discriminator)
        elif len(non_null) == 1:
            core = self.derive(non_null[0])
        else:
            core = CompositionNode(combinator='anyOf', branches=tuple(self.derive(member) for member in non_null))

        if not has_null:
            return core
        if isinstance(core, CompositionNode) and core.combinator == 'anyOf':
            return replace_node(core, branches=(*core.branches, NullNode()))
        return CompositionNode(combinator='anyOf', branches=(core, NullNode()))

    def _sum_type(self, variants: Sequence[Any], discriminator: str) -> SchemaNode:
        owners: dict[str, str] = {}
        branches = []
        for variant in variants:
            record, _ = unwrap_annotated(variant)
            tag = _variant_tag(record, discriminator)
            if tag.value in owners:
                raise AmbiguousDiscriminatorError(
                    discriminator,
                    f"value '{tag.value}' is used by both {owners[tag.value]} and {type_name(record)}",
                )
            owners[tag.value] = type_name(record)
            branches.append(self.derive(variant, tag=tag))
        return CompositionNode(combinator='oneOf', branches=tuple(branches))

    # --------------------------------------------------------------------------
    # Records
    # --------------------------------------------------------------------------

    def _record(self, tp: type, tag: _VariantTag | None) -> SchemaNode:
        return self._named((tp, tag), type_name(tp), lambda: self._build_object(tp, tag))

    def _named(self, key: Hashable, name: str, build: Callable[[], SchemaNode]) -> SchemaNode:
        """Build a possibly recursive schema; re-entry while building yields a $ref."""
        if key in self.names:
            return _definition_ref(self.names[key])
        if key in self.in_progress:
            self.recursive.add(key)
            return _definition_ref(self.in_progress[key])

        self.in_progress[key] = self._unique_name(name)
        try:
            node = build()
        finally:
            definition_name = self.in_progress.pop(key)

        if key not in self.recursive:
            return node
        self.names[key] = definition_name
        self.definitions[definition_name] = node
        return _definition_ref(definition_name)

    def _unique_name(self, name: str) -> str:
        taken = set(self.definitions) | set(self.in_progress.values())
        candidate, suffix = name, 2
        while candidate in taken:
            candidate, suffix = f'{name}{suffix}', suffix + 1
        return candidate

    def _build_object(self, tp: type, tag: _VariantTag | None) -> SchemaNode:
        properties: dict[str, SchemaNode] = {}
        required: list[str] = []

        if tag is not None and tag.injected:
            properties[tag.property] = StringNode(const_value=tag.value)
            required.append(tag.property)

        for field in record_fields(tp):
            schema, is_required = self._field(tp, field)
            properties[field.name] = schema
            is_discriminator = tag is not None and field.name == tag.property
            if is_required or is_discriminator:
                required.append(field.name)

        additional: bool | None = None
        if issubclass(tp, pydantic.BaseModel) and tp.model_config.get('extra') == 'forbid':
            additional = False

        node = ObjectNode(properties=properties, required=tuple(required), additional_properties=additional)
        return apply_annotations(node, getattr(tp, '__schema_annotations__', ()))

    def _field(self, owner: type, field: RecordField) -> tuple[SchemaNode, bool]:
        """Field schema plus whether the field is required."""
        schema = self.derive(field.annotation, field.metadata)

        base, metadata = unwrap_annotated(field.annotation)
        members = union_members(base) or ()
        optional = types.NoneType in members or base is None
        has_default_annotation = any(isinstance(a, Default) for a in collect_annotations([*metadata, *field.metadata]))

        if field.default is not NO_DEFAULT and not has_default_annotation:
            schema = self._with_plain_default(owner, field, schema)

        return schema, not (field.has_default or optional or has_default_annotation)

    def _with_plain_default(self, owner: type, field: RecordField, schema: SchemaNode) -> SchemaNode:
        value = field.default
        try:
            rendered = value.name if isinstance(value, enum.Enum) else to_jsonable_python(value)
        except PydanticSerializationError as e:
            self.logger.warning(f'Skipping default of {type_name(owner)}.{field.name}: not JSON-serializable ({e})')
            return schema
        return replace_node(schema, default=DefaultValue(value=rendered))


# ==============================================================================
# Helpers
# ==============================================================================


def _definition_ref(name: str) -> RefNode:
    return RefNode(uri='#' + to_pointer(('$defs', name)))


def _is_record_union(tp: Any) -> bool:
    members = union_members(tp)
    if members is None:
        return False
    return is_sequence_of_records([member for member in members if member is not types.NoneType])


def _variant_tag(record: type, discriminator: str) -> _VariantTag:
    """Discriminator value for a sum type branch - a declared single Literal, or the class name."""
    for field in record_fields(record):
        if field.name != discriminator:
            continue
        base, _ = unwrap_annotated(field.annotation)
        values = get_args(base) if get_origin(base) is Literal else ()
        if len(values) != 1 or not isinstance(values[0], str):
            raise AmbiguousDiscriminatorError(
                discriminator,
                f'{type_name(record)}.{discriminator} must be a single string Literal to identify the variant',
            )
        return _VariantTag(property=discriminator, value=values[0], injected=False)
    return _VariantTag(property=discriminator, value=type_name(record), injected=True)


def _literal(values: tuple[Any, ...]) -> SchemaNode:
    values = tuple(value.name if isinstance(value, enum.Enum) else value for value in values)
    if all(value is None for value in values):
        return NullNode()
    if all(isinstance(value, str) for value in values):
        if len(values) == 1:
            return StringNode(const_value=values[0])
        return StringNode(enum_values=values)
    if all(isinstance(value, bool) for value in values):
        if len(set(values)) == 1:
            return BooleanNode(const_value=values[0])
        return BooleanNode()
    if all(isinstance(value, int) and not isinstance(value, bool) for value in values):
        if len(values) == 1:
            return IntegerNode(const_value=values[0])
        return IntegerNode(enum_values=values)
    if len(values) == 1:
        return ConstNode(value=values[0])
    return EnumNode(values=values)


def _key_names(mapping: Any, key_type: Any) -> SchemaNode | None:
    """propertyNames constraint for a mapping key type (None when any string is allowed).

    Raises:
        NonStringMapKeyError: If the keys are not strings
    """
    base, _ = unwrap_annotated(key_type)
    if base is str or base is Any:
        return None
    if get_origin(base) is Literal:
        values = get_args(base)
        if all(isinstance(value, str) for value in values):
            return StringNode(enum_values=values)
    elif inspect.isclass(base) and issubclass(base, enum.Enum):
        # Same labels as an Enum field: member names
        return StringNode(enum_values=tuple(member.name for member in base))
    elif inspect.isclass(base) and issubclass(base, str):
        return None
    raise NonStringMapKeyError(mapping, key_type)
