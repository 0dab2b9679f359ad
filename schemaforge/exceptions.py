"""
Shared exceptions for schemaforge.

Schema definition, derivation and reference failures are raised. Validation
failures of instances are data (ValidationError models), not exceptions, except
through SchemaValidator.check which raises SchemaValidationError on request.

Exception Hierarchy:
    SchemaForgeError (base)
    ├── DerivationError (native type → schema failures)
    │   ├── UnsupportedTypeError (no schema mapping for the type)
    │   ├── IncompatibleAnnotationError (constraint does not fit the base type)
    │   ├── NonStringMapKeyError (map keyed by something other than strings)
    │   └── AmbiguousDiscriminatorError (sum type variants cannot be told apart)
    ├── SchemaDefinitionError (malformed schema documents or trees)
    │   ├── SchemaParseError (document uses unknown or malformed keywords)
    │   └── DuplicateAnchorError (same anchor twice in one resource)
    ├── ReferenceResolutionError ($ref / $dynamicRef lookup failures)
    │   └── UnresolvedReferenceError (target not present in the registry)
    └── SchemaValidationError (instance rejected, raised on request only)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from schemaforge.validation.errors import ValidationError


class SchemaForgeError(Exception):
    """Base exception for all schemaforge errors."""


# ==============================================================================
# Derivation
# ==============================================================================


class DerivationError(SchemaForgeError):
    """Base exception for schema derivation failures."""


class UnsupportedTypeError(DerivationError):
    """Raised when a native type has no JSON Schema mapping."""

    def __init__(self, tp: Any, reason: str | None = None) -> None:
        self.tp = tp
        self.reason = reason
        message = f'Cannot derive a schema for {_type_name(tp)}'
        if reason:
            message += f': {reason}'
        super().__init__(message)


class IncompatibleAnnotationError(DerivationError):
    """Raised when a constraint annotation is applied to a base type it does not fit."""

    def __init__(self, annotation: Any, schema_kind: str, detail: str | None = None) -> None:
        self.annotation = annotation
        self.schema_kind = schema_kind
        self.detail = detail
        message = f'{type(annotation).__name__} cannot be applied to a {schema_kind} schema'
        if detail:
            message += f' ({detail})'
        super().__init__(message)


class NonStringMapKeyError(DerivationError):
    """Raised when a mapping type is keyed by something other than strings."""

    def __init__(self, tp: Any, key_type: Any) -> None:
        self.tp = tp
        self.key_type = key_type
        super().__init__(
            f'{_type_name(tp)} has key type {_type_name(key_type)}; JSON object keys must be strings'
        )


class AmbiguousDiscriminatorError(DerivationError):
    """Raised when sum type variants cannot be distinguished by their discriminator."""

    def __init__(self, discriminator: str, detail: str) -> None:
        self.discriminator = discriminator
        self.detail = detail
        super().__init__(f"Discriminator '{discriminator}' is ambiguous: {detail}")


# ==============================================================================
# Schema definition
# ==============================================================================


class SchemaDefinitionError(SchemaForgeError):
    """Base exception for malformed schema documents or schema trees."""


class SchemaParseError(SchemaDefinitionError):
    """Raised when a JSON Schema document cannot be loaded into schema nodes."""

    def __init__(self, location: str, detail: str) -> None:
        self.location = location
        self.detail = detail
        super().__init__(f"Invalid schema at '{location or '#'}': {detail}")


class DuplicateAnchorError(SchemaDefinitionError):
    """Raised when one schema resource defines the same anchor twice."""

    def __init__(self, base: str, anchor: str) -> None:
        self.base = base
        self.anchor = anchor
        super().__init__(f"Anchor '{anchor}' is defined more than once in resource '{base or '<root>'}'")


# ==============================================================================
# References
# ==============================================================================


class ReferenceResolutionError(SchemaForgeError):
    """Base exception for $ref / $dynamicRef resolution failures."""


class UnresolvedReferenceError(ReferenceResolutionError):
    """Raised when a reference target is not present in the registry."""

    def __init__(self, reference: str, base: str = '', detail: str | None = None) -> None:
        self.reference = reference
        self.base = base
        self.detail = detail
        message = f"Cannot resolve reference '{reference}'"
        if base:
            message += f" against base '{base}'"
        if detail:
            message += f': {detail}'
        super().__init__(message)


# ==============================================================================
# Validation
# ==============================================================================


class SchemaValidationError(SchemaForgeError):
    """Raised by SchemaValidator.check when an instance does not conform."""

    def __init__(self, errors: Sequence[ValidationError]) -> None:
        self.errors = list(errors)
        lines = '\n  '.join(f'{error.instance_pointer or "<root>"}: {error.message}' for error in self.errors[:10])
        if len(self.errors) > 10:
            lines += f'\n  ... and {len(self.errors) - 10} more'
        super().__init__(f'Instance failed validation with {len(self.errors)} error(s):\n  {lines}')


def _type_name(tp: Any) -> str:
    return getattr(tp, '__qualname__', None) or repr(tp)
