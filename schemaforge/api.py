"""
Collaborator facade - one call per use case, memoized per type.

The HTTP validation layer calls ``validator_for(RequestBody).validate(payload)``
and turns the errors into a 400 body with ``build_report``; the LLM layer calls
``schema_document_for(Answer)`` to obtain a structured-output schema.
"""

from __future__ import annotations

import functools
from typing import Any

from schemaforge.derivation.engine import derive_schema
from schemaforge.schemas.nodes import SchemaNode
from schemaforge.schemas.serialize import to_json_schema_document
from schemaforge.validation.engine import SchemaValidator
from schemaforge.validation.errors import ValidationError

__all__ = [
    'schema_document_for',
    'schema_for',
    'validate_instance',
    'validator_for',
]


def schema_for(tp: Any) -> SchemaNode:
    """Derived schema for ``tp`` (memoized by the process-wide deriver)."""
    return derive_schema(tp)


@functools.cache
def validator_for(tp: Any) -> SchemaValidator:
    """Validator over the derived schema of ``tp``; the registry is built once per type."""
    return SchemaValidator.for_schema(schema_for(tp))


def validate_instance(tp: Any, value: Any) -> list[ValidationError]:
    return validator_for(tp).validate(value)


def schema_document_for(tp: Any) -> dict[str, Any]:
    """JSON Schema document (with ``$schema``) for ``tp``."""
    return to_json_schema_document(schema_for(tp))
