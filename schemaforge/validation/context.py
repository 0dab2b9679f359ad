"""
Per-call validation state and validation options.

ValidationOptions is immutable and shareable. ValidationContext is created for
one ``validate`` call and mutated only inside it: path stacks grow and shrink
with the descent, the dynamic scope tracks entered resources and reference
targets, and active references guard against reference cycles.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager

import attrs

from schemaforge.config.engine import settings
from schemaforge.registry import Registry
from schemaforge.schemas.nodes import SchemaNode
from schemaforge.types import DynamicScopeOrder, Path, PathSegment
from schemaforge.validation.errors import CompositionFailureKind, ErrorKind, ValidationError

__all__ = [
    'ValidationContext',
    'ValidationOptions',
]


@attrs.frozen
class ValidationOptions:
    """Validation behaviour switches.

    Attributes:
        format_assertion: Reject strings that fail a known ``format`` (False: format is annotation only)
        dynamic_scope_order: Search direction for ``$dynamicRef`` over the dynamic scope
        formats: Extra or overriding format checkers by format name
    """

    format_assertion: bool = True
    dynamic_scope_order: DynamicScopeOrder = 'innermost'
    formats: Mapping[str, Callable[[str], bool]] = attrs.field(factory=dict, eq=False)

    @classmethod
    def from_settings(cls) -> ValidationOptions:
        return cls(
            format_assertion=settings.FORMAT_ASSERTION,
            dynamic_scope_order=settings.DYNAMIC_SCOPE_ORDER,
        )


@attrs.define
class ValidationContext:
    registry: Registry
    options: ValidationOptions
    instance_path: list[PathSegment] = attrs.field(factory=list)
    schema_path: list[PathSegment] = attrs.field(factory=list)
    dynamic_scope: list[SchemaNode] = attrs.field(factory=list)
    active_references: set[tuple[int, Path]] = attrs.field(factory=set)

    @contextmanager
    def at_instance(self, segment: PathSegment) -> Iterator[None]:
        """Descend into a property name or array index of the instance."""
        self.instance_path.append(segment)
        try:
            yield
        finally:
            self.instance_path.pop()

    @contextmanager
    def at_schema(self, *segments: PathSegment) -> Iterator[None]:
        """Descend into a schema keyword (and property name / branch index)."""
        self.schema_path.extend(segments)
        try:
            yield
        finally:
            del self.schema_path[len(self.schema_path) - len(segments) :]

    @contextmanager
    def in_scope(self, node: SchemaNode) -> Iterator[None]:
        """Enter a schema resource or reference target (dynamic scope)."""
        self.dynamic_scope.append(node)
        try:
            yield
        finally:
            self.dynamic_scope.pop()

    def reference_key(self, target: SchemaNode) -> tuple[int, Path]:
        return (id(target), tuple(self.instance_path))

    @contextmanager
    def following(self, target: SchemaNode) -> Iterator[None]:
        """Validate inside a resolved reference target; callers check ``reference_key`` first."""
        key = self.reference_key(target)
        self.active_references.add(key)
        try:
            with self.in_scope(target):
                yield
        finally:
            self.active_references.discard(key)

    def error(
        self,
        keyword: str,
        kind: ErrorKind,
        message: str,
        *,
        composition: CompositionFailureKind | None = None,
        causes: list[ValidationError] | None = None,
    ) -> ValidationError:
        """Error at the current instance location for ``keyword`` of the current schema."""
        return ValidationError(
            keyword=keyword,
            kind=kind,
            message=message,
            instance_path=tuple(self.instance_path),
            schema_path=(*self.schema_path, keyword),
            composition=composition,
            causes=tuple(causes or ()),
        )
