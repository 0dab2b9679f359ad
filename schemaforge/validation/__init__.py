"""Validation of JSON values against schema nodes."""

from __future__ import annotations

from schemaforge.validation.context import ValidationOptions
from schemaforge.validation.engine import SchemaValidator, is_valid, validate
from schemaforge.validation.errors import CompositionFailureKind, ErrorKind, ValidationError
from schemaforge.validation.report import ErrorDetail, ValidationReport, build_report, format_error

__all__ = [
    'CompositionFailureKind',
    'ErrorDetail',
    'ErrorKind',
    'SchemaValidator',
    'ValidationError',
    'ValidationOptions',
    'ValidationReport',
    'build_report',
    'format_error',
    'is_valid',
    'validate',
]
