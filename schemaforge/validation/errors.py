"""
Validation errors - structured, path-located failures returned as data.

Instance failures are never raised; the engine aggregates them into a list of
ValidationError. ``kind`` names the failure family, ``keyword`` the schema keyword
that failed, and the two paths locate the failure in the instance and the schema.
"""

from __future__ import annotations

from typing import Literal

from schemaforge.base_model import StrictModel
from schemaforge.json_values import to_pointer
from schemaforge.types import PathSegment

__all__ = [
    'CompositionFailureKind',
    'ErrorKind',
    'ValidationError',
]

type ErrorKind = Literal[
    'TypeMismatch',
    'RangeViolation',  # minimum, maximum, exclusive bounds, multipleOf
    'LengthViolation',  # string length, item counts, property counts
    'PatternMismatch',
    'FormatViolation',
    'ConstMismatch',
    'EnumMismatch',
    'RequiredPropertyMissing',  # required, dependentRequired
    'AdditionalPropertyNotAllowed',
    'UniquenessViolation',
    'CompositionFailure',
    'UnresolvedReference',
    'CyclicReference',
]

type CompositionFailureKind = Literal['AllOf', 'AnyOf', 'OneOfNoMatch', 'OneOfAmbiguous', 'Not']


class ValidationError(StrictModel):
    """One validation failure.

    Aggregate failures (anyOf, oneOf with no match) carry the per-branch failures
    in ``causes``.
    """

    keyword: str
    kind: ErrorKind
    message: str
    instance_path: tuple[PathSegment, ...] = ()
    schema_path: tuple[PathSegment, ...] = ()
    composition: CompositionFailureKind | None = None
    causes: tuple[ValidationError, ...] = ()

    @property
    def instance_pointer(self) -> str:
        """JSON pointer into the instance ('' is the whole value)."""
        return to_pointer(self.instance_path)

    @property
    def schema_pointer(self) -> str:
        """URI-fragment pointer into the schema, e.g. '#/properties/age/minimum'."""
        return '#' + to_pointer(self.schema_path)


ValidationError.model_rebuild()
