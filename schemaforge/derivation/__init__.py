"""Schema derivation from native Python types."""

from __future__ import annotations

from schemaforge.derivation.engine import SchemaDeriver, default_deriver, derive_schema

__all__ = [
    'SchemaDeriver',
    'default_deriver',
    'derive_schema',
]
