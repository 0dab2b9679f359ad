"""
Error reports - validation errors rendered for collaborators.

ValidationReport is the JSON-ready form (camelCase keys when dumped with
``by_alias=True``) that an HTTP layer returns as a 400 body or the CLI prints
with ``--json``. ``format_error`` is the human-readable one-error-per-line form.
"""

from __future__ import annotations

from collections.abc import Sequence

import pydantic

from schemaforge.base_model import StrictModel
from schemaforge.validation.errors import CompositionFailureKind, ErrorKind, ValidationError

__all__ = [
    'ErrorDetail',
    'ValidationReport',
    'build_report',
    'format_error',
]


class ErrorDetail(StrictModel):
    keyword: str
    kind: ErrorKind
    message: str
    instance_path: str = pydantic.Field(serialization_alias='instancePath')
    schema_path: str = pydantic.Field(serialization_alias='schemaPath')
    composition: CompositionFailureKind | None = None
    causes: tuple[ErrorDetail, ...] = ()

    @classmethod
    def from_error(cls, error: ValidationError) -> ErrorDetail:
        return cls(
            keyword=error.keyword,
            kind=error.kind,
            message=error.message,
            instance_path=error.instance_pointer,
            schema_path=error.schema_pointer,
            composition=error.composition,
            causes=tuple(cls.from_error(cause) for cause in error.causes),
        )


class ValidationReport(StrictModel):
    valid: bool
    error_count: int = pydantic.Field(serialization_alias='errorCount')
    errors: tuple[ErrorDetail, ...] = ()

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


ErrorDetail.model_rebuild()


def build_report(errors: Sequence[ValidationError]) -> ValidationReport:
    """Report for the result of ``validate`` (an empty sequence is a valid report)."""
    return ValidationReport(
        valid=not errors,
        error_count=len(errors),
        errors=tuple(ErrorDetail.from_error(error) for error in errors),
    )


def format_error(error: ValidationError, indent: int = 0) -> str:
    """One line per error, branch causes indented underneath.

    Example:
        /age: -5 is less than the minimum of 0 [minimum at #/properties/age/minimum]
    """
    pad = '  ' * indent
    lines = [f'{pad}{error.instance_pointer or "<root>"}: {error.message} [{error.keyword} at {error.schema_pointer}]']
    lines.extend(format_error(cause, indent + 1) for cause in error.causes)
    return '\n'.join(lines)
