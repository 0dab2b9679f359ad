"""
schemaforge - JSON Schema 2020-12 nodes, derivation from Python types, and validation.

    from schemaforge import derive_schema, validate, to_json_schema_document

    schema = derive_schema(User)
    errors = validate(schema, {'name': '', 'age': -5})
    document = to_json_schema_document(schema)
"""

from __future__ import annotations

from schemaforge.api import schema_document_for, schema_for, validate_instance, validator_for
from schemaforge.derivation import SchemaDeriver, derive_schema
from schemaforge.exceptions import (
    AmbiguousDiscriminatorError,
    DerivationError,
    DuplicateAnchorError,
    IncompatibleAnnotationError,
    NonStringMapKeyError,
    ReferenceResolutionError,
    SchemaDefinitionError,
    SchemaForgeError,
    SchemaParseError,
    SchemaValidationError,
    UnresolvedReferenceError,
    UnsupportedTypeError,
)
from schemaforge.registry import Registry
from schemaforge.schemas import SchemaNode, dumps_schema, parse_schema, to_json_schema, to_json_schema_document
from schemaforge.validation import (
    SchemaValidator,
    ValidationError,
    ValidationOptions,
    ValidationReport,
    build_report,
    format_error,
    is_valid,
    validate,
)

__all__ = [
    # Derivation
    'SchemaDeriver',
    'derive_schema',
    # Schemas
    'SchemaNode',
    'dumps_schema',
    'parse_schema',
    'to_json_schema',
    'to_json_schema_document',
    # Validation
    'Registry',
    'SchemaValidator',
    'ValidationError',
    'ValidationOptions',
    'ValidationReport',
    'build_report',
    'format_error',
    'is_valid',
    'validate',
    # Facade
    'schema_document_for',
    'schema_for',
    'validate_instance',
    'validator_for',
    # Exceptions
    'AmbiguousDiscriminatorError',
    'DerivationError',
    'DuplicateAnchorError',
    'IncompatibleAnnotationError',
    'NonStringMapKeyError',
    'ReferenceResolutionError',
    'SchemaDefinitionError',
    'SchemaForgeError',
    'SchemaParseError',
    'SchemaValidationError',
    'UnresolvedReferenceError',
    'UnsupportedTypeError',
]
