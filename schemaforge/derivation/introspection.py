"""
Introspection utilities for native record types.

Normalizes the five record flavours the deriver understands into one field list:
dataclasses, pydantic models, attrs classes, NamedTuples and TypedDicts. Also
unwraps the typing layers that carry no shape of their own (Annotated, Python
3.12+ type aliases, NewType, Required/NotRequired).
"""

from __future__ import annotations

import dataclasses
import inspect
import types
import typing
from collections.abc import Sequence
from dataclasses import dataclass
from typing import (
    Annotated,
    Any,
    NewType,
    NotRequired,
    Required,
    TypeAliasType,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
)

import attrs
import pydantic
from pydantic_core import PydanticUndefined

from schemaforge.exceptions import UnsupportedTypeError

__all__ = [
    'NO_DEFAULT',
    'RecordField',
    'is_record_type',
    'is_sequence_of_records',
    'record_fields',
    'type_name',
    'union_members',
    'unwrap_annotated',
]


class _NoDefault:
    """Sentinel - field declares no plain default value."""

    def __repr__(self) -> str:
        return 'NO_DEFAULT'


NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True, slots=True)
class RecordField:
    """One field of a record type, as seen by the deriver."""

    name: str  # JSON property name (aliases applied)
    annotation: Any  # declared type, Annotated extras intact
    has_default: bool  # default or default factory declared by the type system
    default: Any = NO_DEFAULT  # plain default value, if one can be emitted
    metadata: tuple[Any, ...] = ()  # extra Annotated-style metadata (pydantic FieldInfo)


# ==============================================================================
# Typing layers
# ==============================================================================


def unwrap_annotated(tp: Any) -> tuple[Any, list[Any]]:
    """Strip Annotated / type alias / NewType / Required layers.

    Handles Python 3.12+ type aliases (``type X = Annotated[...]``) by following
    ``__value__``. Metadata is returned inner-first so that annotations written
    closer to the use site win when applied in order.

    Example:
        >>> type Name = Annotated[str, MinLength(1)]
        >>> unwrap_annotated(Annotated[Name, MaxLength(5)])
        (<class 'str'>, [MinLength(value=1), MaxLength(value=5)])
    """
    metadata: list[Any] = []
    while True:
        if isinstance(tp, TypeAliasType):
            tp = tp.__value__
        elif get_origin(tp) is Annotated:
            metadata = list(tp.__metadata__) + metadata
            tp = tp.__origin__
        elif get_origin(tp) in (Required, NotRequired):
            tp = get_args(tp)[0]
        elif isinstance(tp, NewType):
            tp = tp.__supertype__
        else:
            return tp, metadata


def union_members(tp: Any) -> tuple[Any, ...] | None:
    """Members of a ``Union[...]`` / ``X | Y`` type, or None for anything else."""
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        return get_args(tp)
    return None


# ==============================================================================
# Records
# ==============================================================================


def is_record_type(tp: Any) -> bool:
    if not inspect.isclass(tp):
        return False
    return (
        dataclasses.is_dataclass(tp)
        or issubclass(tp, pydantic.BaseModel)
        or attrs.has(tp)
        or _is_namedtuple(tp)
        or is_typeddict(tp)
    )


def record_fields(tp: type) -> list[RecordField]:
    """Fields of a record type in declaration order.

    Raises:
        UnsupportedTypeError: If ``tp`` is not a record type, or its annotations
            reference names that cannot be resolved
    """
    if isinstance(tp, type) and issubclass(tp, pydantic.BaseModel):
        return _pydantic_fields(tp)
    if dataclasses.is_dataclass(tp):
        hints = _type_hints(tp)
        return [_dataclass_field(field, hints) for field in dataclasses.fields(tp)]
    if attrs.has(tp):
        hints = _type_hints(tp)
        return [_attrs_field(field, hints) for field in attrs.fields(tp)]
    if _is_namedtuple(tp):
        hints = _type_hints(tp)
        defaults = tp._field_defaults
        return [
            RecordField(
                name=name,
                annotation=hints.get(name, Any),
                has_default=name in defaults,
                default=defaults.get(name, NO_DEFAULT),
            )
            for name in tp._fields
        ]
    if is_typeddict(tp):
        hints = _type_hints(tp)
        return [_typeddict_field(tp, name, hint) for name, hint in hints.items()]
    raise UnsupportedTypeError(tp, 'not a record type')


def _pydantic_fields(model: type[pydantic.BaseModel]) -> list[RecordField]:
    fields = []
    for name, info in model.model_fields.items():
        default = info.default if info.default is not PydanticUndefined else NO_DEFAULT
        fields.append(
            RecordField(
                name=info.alias or name,
                annotation=info.annotation,
                has_default=not info.is_required(),
                default=default,
                # title/description/constraints live on FieldInfo, not in the annotation
                metadata=(info,),
            )
        )
    return fields


def _dataclass_field(field: dataclasses.Field[Any], hints: dict[str, Any]) -> RecordField:
    has_factory = field.default_factory is not dataclasses.MISSING
    has_default = field.default is not dataclasses.MISSING
    return RecordField(
        name=field.name,
        annotation=hints.get(field.name, Any),
        has_default=has_default or has_factory,
        default=field.default if has_default else NO_DEFAULT,
    )


def _attrs_field(field: attrs.Attribute[Any], hints: dict[str, Any]) -> RecordField:
    if field.default is attrs.NOTHING:
        return RecordField(name=field.name, annotation=hints.get(field.name, field.type or Any), has_default=False)
    is_factory = isinstance(field.default, attrs.Factory)
    return RecordField(
        name=field.name,
        annotation=hints.get(field.name, field.type or Any),
        has_default=True,
        default=NO_DEFAULT if is_factory else field.default,
    )


def _typeddict_field(tp: Any, name: str, hint: Any) -> RecordField:
    # Qualifiers written as strings (postponed annotations) are missing from __required_keys__
    match get_origin(hint):
        case typing.NotRequired:
            optional = True
        case typing.Required:
            optional = False
        case _:
            optional = name not in tp.__required_keys__
    return RecordField(name=name, annotation=hint, has_default=optional)


def _type_hints(tp: Any) -> dict[str, Any]:
    try:
        return get_type_hints(tp, include_extras=True)
    except NameError as e:
        raise UnsupportedTypeError(tp, f'unresolved forward reference ({e})') from e


def _is_namedtuple(tp: type) -> bool:
    return issubclass(tp, tuple) and hasattr(tp, '_fields') and hasattr(tp, '_field_defaults')


def type_name(tp: Any) -> str:
    """Short display name for a type (definition names, discriminator values)."""
    return getattr(tp, '__name__', None) or repr(tp)


def is_sequence_of_records(members: Sequence[Any]) -> bool:
    return len(members) >= 2 and all(is_record_type(unwrap_annotated(member)[0]) for member in members)
