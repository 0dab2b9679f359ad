"""
Field annotations - constraint and metadata markers for schema derivation.

Markers ride along in ``typing.Annotated`` (the Pydantic v2 pattern) and are
consumed once when a schema is derived:

    class User(BaseModel):
        name: Annotated[str, MinLength(1), MaxLength(50)]
        age: Annotated[int, Minimum(0), Description('Age in years')]

``annotated_types`` constraints (Ge, Gt, Le, Lt, MultipleOf, MinLen, MaxLen) and
``pydantic.Field(...)`` metadata (including ``pattern``) are recognized as well, so
models declared with ``Field(ge=0, description=...)`` derive the same schema as
their marker form.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

import annotated_types
import pydantic
from pydantic.fields import FieldInfo

from schemaforge.exceptions import IncompatibleAnnotationError
from schemaforge.schemas.nodes import (
    ArrayNode,
    BooleanNode,
    CompositionNode,
    DefaultValue,
    IntegerNode,
    NullNode,
    NumberNode,
    SchemaNode,
    StringNode,
    replace_node,
)
from schemaforge.types import JsonValue

__all__ = [
    'Const',
    'Default',
    'Deprecated',
    'Description',
    'Discriminated',
    'EnumValues',
    'Examples',
    'ExclusiveMaximum',
    'ExclusiveMinimum',
    'FieldAnnotation',
    'Format',
    'MaxItems',
    'MaxLength',
    'Maximum',
    'MinItems',
    'MinLength',
    'Minimum',
    'MultipleOf',
    'Pattern',
    'ReadOnly',
    'Title',
    'UniqueItems',
    'WriteOnly',
    'annotate',
    'apply_annotations',
    'collect_annotations',
]

T = TypeVar('T', bound=type)


# ==============================================================================
# Markers
# ==============================================================================


@dataclass(frozen=True)
class FieldAnnotation:
    """Base class for every schema marker."""

    pass


# String
@dataclass(frozen=True)
class MinLength(FieldAnnotation):
    value: int


@dataclass(frozen=True)
class MaxLength(FieldAnnotation):
    value: int


@dataclass(frozen=True)
class Pattern(FieldAnnotation):
    """Regular expression with search semantics (anchor with ^...$ to match whole values)."""

    regex: str


@dataclass(frozen=True)
class Format(FieldAnnotation):
    name: str


# Numeric
@dataclass(frozen=True)
class Minimum(FieldAnnotation):
    value: int | float


@dataclass(frozen=True)
class Maximum(FieldAnnotation):
    value: int | float


@dataclass(frozen=True)
class ExclusiveMinimum(FieldAnnotation):
    value: int | float


@dataclass(frozen=True)
class ExclusiveMaximum(FieldAnnotation):
    value: int | float


@dataclass(frozen=True)
class MultipleOf(FieldAnnotation):
    value: int | float


# Value (string, numeric, boolean)
@dataclass(frozen=True)
class Const(FieldAnnotation):
    value: JsonValue


@dataclass(frozen=True)
class EnumValues(FieldAnnotation):
    values: tuple[JsonValue, ...]


# Array
@dataclass(frozen=True)
class MinItems(FieldAnnotation):
    value: int


@dataclass(frozen=True)
class MaxItems(FieldAnnotation):
    value: int


@dataclass(frozen=True)
class UniqueItems(FieldAnnotation):
    pass


# Any type
@dataclass(frozen=True)
class Title(FieldAnnotation):
    text: str


@dataclass(frozen=True)
class Description(FieldAnnotation):
    text: str


@dataclass(frozen=True)
class Examples(FieldAnnotation):
    values: tuple[JsonValue, ...]


@dataclass(frozen=True)
class Deprecated(FieldAnnotation):
    pass


@dataclass(frozen=True)
class ReadOnly(FieldAnnotation):
    pass


@dataclass(frozen=True)
class WriteOnly(FieldAnnotation):
    pass


@dataclass(frozen=True)
class Default(FieldAnnotation):
    """Default value - also makes the field optional (not required)."""

    value: JsonValue


# Sum types
@dataclass(frozen=True)
class Discriminated(FieldAnnotation):
    """Override the discriminator property name for a union of record types."""

    property: str


METADATA_ANNOTATIONS = (Title, Description, Examples, Deprecated, ReadOnly, WriteOnly, Default)


# ==============================================================================
# Class-level annotations
# ==============================================================================


def annotate(*annotations: FieldAnnotation) -> Callable[[T], T]:
    """Class decorator attaching annotations to a record type's own schema.

    Example:
        >>> @annotate(Title('User'), Description('A registered user'))
        ... @dataclass
        ... class User:
        ...     name: str
    """

    def decorator(cls: T) -> T:
        cls.__schema_annotations__ = tuple(annotations)
        return cls

    return decorator


# ==============================================================================
# Collection from Annotated metadata
# ==============================================================================


def collect_annotations(metadata: Iterable[Any]) -> list[FieldAnnotation]:
    """Translate ``Annotated`` metadata into markers, in declaration order.

    Recognizes schemaforge markers, ``annotated_types`` constraints (including
    grouped ones such as Interval and Len) and ``pydantic.Field`` info. Anything
    else (markers belonging to other libraries) is skipped.
    """
    collected: list[FieldAnnotation] = []
    for item in metadata:
        match item:
            case FieldAnnotation():
                collected.append(item)
            case FieldInfo():
                collected.extend(_from_field_info(item))
            case annotated_types.Ge(ge=value):
                collected.append(Minimum(value))
            case annotated_types.Gt(gt=value):
                collected.append(ExclusiveMinimum(value))
            case annotated_types.Le(le=value):
                collected.append(Maximum(value))
            case annotated_types.Lt(lt=value):
                collected.append(ExclusiveMaximum(value))
            case annotated_types.MultipleOf(multiple_of=value):
                collected.append(MultipleOf(value))
            case annotated_types.MinLen(min_length=value):
                collected.append(_Length('min', value))
            case annotated_types.MaxLen(max_length=value):
                collected.append(_Length('max', value))
            case annotated_types.GroupedMetadata():
                collected.extend(collect_annotations(list(item)))
            # pydantic keeps Field(pattern=...) and StringConstraints(pattern=...) in general metadata
            case annotated_types.BaseMetadata(pattern=str() as regex):
                collected.append(Pattern(regex))
            case annotated_types.BaseMetadata(pattern=re.Pattern() as compiled):
                collected.append(Pattern(compiled.pattern))
            case _:
                pass
    return collected


def _from_field_info(info: FieldInfo) -> list[FieldAnnotation]:
    collected: list[FieldAnnotation] = []
    if info.title is not None:
        collected.append(Title(info.title))
    if info.description is not None:
        collected.append(Description(info.description))
    if info.examples is not None:
        collected.append(Examples(tuple(info.examples)))
    if info.deprecated:
        collected.append(Deprecated())
    collected.extend(collect_annotations(info.metadata))
    return collected


@dataclass(frozen=True)
class _Length(FieldAnnotation):
    """Length bound from annotated_types - string length or array size depending on the base type."""

    bound: str
    value: int


# ==============================================================================
# Application
# ==============================================================================


def apply_annotations(node: SchemaNode, annotations: Sequence[FieldAnnotation]) -> SchemaNode:
    """Fold annotations into a derived schema.

    For a nullable schema (``anyOf[T, null]``) value constraints go to the
    non-null branch; metadata always applies to the schema as a whole.

    Raises:
        IncompatibleAnnotationError: If a constraint does not fit the base type
    """
    if not annotations:
        return node

    metadata = [a for a in annotations if isinstance(a, METADATA_ANNOTATIONS)]
    constraints = [a for a in annotations if not isinstance(a, METADATA_ANNOTATIONS)]

    if constraints:
        node = _apply_constraints(node, constraints)
    if metadata:
        node = _replace(node, metadata[0], **_metadata_changes(metadata))
    return node


def _apply_constraints(node: SchemaNode, constraints: list[FieldAnnotation]) -> SchemaNode:
    match node:
        case CompositionNode(combinator='anyOf', branches=branches) if _is_nullable(branches):
            target = next(branch for branch in branches if not isinstance(branch, NullNode))
            constrained = _apply_constraints(target, constraints)
            return _replace(
                node,
                constraints[0],
                branches=tuple(constrained if branch is target else branch for branch in branches),
            )
        case _:
            changes: dict[str, Any] = {}
            for annotation in constraints:
                changes.update(_constraint_change(node, annotation))
            return _replace(node, constraints[0], **changes)


def _is_nullable(branches: tuple[SchemaNode, ...]) -> bool:
    non_null = [branch for branch in branches if not isinstance(branch, NullNode)]
    return len(branches) == 2 and len(non_null) == 1


def _constraint_change(node: SchemaNode, annotation: FieldAnnotation) -> dict[str, Any]:
    """Field update for one constraint on ``node``, or raise if it does not fit."""
    match annotation, node:
        case MinLength(value=value) | _Length(bound='min', value=value), StringNode():
            return {'min_length': value}
        case MaxLength(value=value) | _Length(bound='max', value=value), StringNode():
            return {'max_length': value}
        case _Length(bound='min', value=value), ArrayNode():
            return {'min_items': value}
        case _Length(bound='max', value=value), ArrayNode():
            return {'max_items': value}
        case Pattern(regex=regex), StringNode():
            return {'pattern': regex}
        case Format(name=name), StringNode():
            return {'format': name}
        case Minimum(value=value), NumberNode() | IntegerNode():
            return {'minimum': value}
        case Maximum(value=value), NumberNode() | IntegerNode():
            return {'maximum': value}
        case ExclusiveMinimum(value=value), NumberNode() | IntegerNode():
            return {'exclusive_minimum': value}
        case ExclusiveMaximum(value=value), NumberNode() | IntegerNode():
            return {'exclusive_maximum': value}
        case MultipleOf(value=value), NumberNode() | IntegerNode():
            return {'multiple_of': value}
        case Const(value=value), StringNode() | NumberNode() | IntegerNode() | BooleanNode():
            _check_value_kind(annotation, node, value)
            return {'const_value': value}
        case EnumValues(values=values), StringNode() | NumberNode() | IntegerNode():
            for value in values:
                _check_value_kind(annotation, node, value)
            return {'enum_values': tuple(values)}
        case MinItems(value=value), ArrayNode():
            return {'min_items': value}
        case MaxItems(value=value), ArrayNode():
            return {'max_items': value}
        case UniqueItems(), ArrayNode():
            return {'unique_items': True}
        case _:
            raise IncompatibleAnnotationError(annotation, node.kind)


def _check_value_kind(annotation: FieldAnnotation, node: SchemaNode, value: Any) -> None:
    match node:
        case StringNode():
            ok = isinstance(value, str)
        case BooleanNode():
            ok = isinstance(value, bool)
        case IntegerNode():
            ok = isinstance(value, int) and not isinstance(value, bool)
        case _:
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    if not ok:
        raise IncompatibleAnnotationError(annotation, node.kind, f'value {value!r} does not match the base type')


def _metadata_changes(metadata: list[FieldAnnotation]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for annotation in metadata:
        match annotation:
            case Title(text=text):
                changes['title'] = text
            case Description(text=text):
                changes['description'] = text
            case Examples(values=values):
                changes['examples'] = tuple(values)
            case Deprecated():
                changes['deprecated'] = True
            case ReadOnly():
                changes['read_only'] = True
            case WriteOnly():
                changes['write_only'] = True
            case Default(value=value):
                changes['default'] = DefaultValue(value=value)
            case _:
                raise ValueError(f'Unhandled metadata annotation: {type(annotation).__name__}')
    return changes


def _replace(node: SchemaNode, annotation: FieldAnnotation, **changes: Any) -> SchemaNode:
    """replace_node, reporting invalid constraint values (e.g. a bad regex) against the annotation."""
    try:
        return replace_node(node, **changes)
    except pydantic.ValidationError as e:
        raise IncompatibleAnnotationError(annotation, node.kind, str(e)) from e
