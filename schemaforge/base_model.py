"""
Shared Pydantic base models.

StrictModel backs the report/error models (fields are always built in-process).
NodeModel backs the schema node tree: frozen and closed, but lax so that callers
can pass lists where the node stores tuples.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Base model with strict validation settings."""

    model_config = ConfigDict(
        extra='forbid',  # Raise error on unexpected fields
        strict=True,  # Strict type validation
        frozen=True,  # Immutable (cannot modify after creation)
    )


class NodeModel(BaseModel):
    """Base model for schema nodes - immutable, closed, lax coercion."""

    model_config = ConfigDict(
        extra='forbid',
        frozen=True,
    )
