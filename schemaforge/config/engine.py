"""
Engine configuration.

Defaults for derivation, serialization and validation. Every value can be
overridden per call (SchemaDeriver arguments, ValidationOptions); these settings
only supply the defaults.
"""

from __future__ import annotations

import pydantic

from schemaforge.config.base import BaseForgeSettings, lazy_settings
from schemaforge.types import DynamicScopeOrder


class EngineSettings(BaseForgeSettings):
    """Derivation and validation defaults."""

    # Validation
    FORMAT_ASSERTION: bool = True  # False: 'format' is an annotation only
    DYNAMIC_SCOPE_ORDER: DynamicScopeOrder = 'innermost'

    # Derivation
    DISCRIMINATOR_PROPERTY: str = 'type'

    # Serialization
    INCLUDE_SCHEMA_URI: bool = True

    @pydantic.field_validator('DISCRIMINATOR_PROPERTY')
    @classmethod
    def validate_discriminator_property(cls, v: str) -> str:
        """Discriminator must be a usable property name."""
        if not v.strip():
            raise ValueError('DISCRIMINATOR_PROPERTY must be a non-empty property name')
        return v


# Module-level singleton (lazy-loaded)
settings = lazy_settings(EngineSettings)
