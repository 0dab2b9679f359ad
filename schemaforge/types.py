"""
Shared type definitions.

JSON values are modelled with pydantic's JsonValue; the aliases here describe
locations inside instances and schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import JsonValue

__all__ = [
    'DynamicScopeOrder',
    'JsonValue',
    'PathSegment',
    'Path',
]

# Property name (objects) or index (arrays)
type PathSegment = str | int

type Path = tuple[PathSegment, ...]

# Search direction for $dynamicRef resolution over the dynamic scope stack
type DynamicScopeOrder = Literal['innermost', 'outermost']
