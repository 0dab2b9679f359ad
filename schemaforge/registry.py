"""
Schema registry - location, anchor and resource index over a schema tree.

Built once by a single depth-first walk, then read-only (every table is a
MappingProxyType over a finished dict), so one registry can be shared by any
number of concurrent validations.

Tables:
    resources        base URI → resource root ('' for an anonymous root)
    pointers         (base URI, JSON pointer) → node, for every node in every
                     enclosing resource (pointers may cross embedded resources)
    anchors          (base URI, name) → node, for $anchor and $dynamicAnchor
    dynamic_anchors  (base URI, name) → node, for $dynamicAnchor only
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import MappingProxyType
from urllib.parse import urldefrag, urljoin

import attrs

from schemaforge.exceptions import DuplicateAnchorError, UnresolvedReferenceError
from schemaforge.json_values import parse_pointer, to_pointer
from schemaforge.schemas.nodes import SchemaNode, iter_subschemas
from schemaforge.types import DynamicScopeOrder, Path

__all__ = [
    'Registry',
]

type _Scope = tuple[str, Path]


@attrs.frozen
class Registry:
    """Read-only index over one root schema and any pre-registered external roots."""

    root: SchemaNode
    root_base: str
    resources: Mapping[str, SchemaNode]
    pointers: Mapping[tuple[str, str], SchemaNode]
    anchors: Mapping[tuple[str, str], SchemaNode]
    dynamic_anchors: Mapping[tuple[str, str], SchemaNode]
    bases: Mapping[int, str] = attrs.field(repr=False)

    @classmethod
    def build(cls, root: SchemaNode, externals: Mapping[str, SchemaNode] | None = None) -> Registry:
        """Index ``root`` and ``externals`` (URI → schema, for references that must not be fetched).

        Raises:
            DuplicateAnchorError: If one resource defines the same anchor on two different nodes
        """
        builder = _RegistryBuilder()
        builder.walk(root, ((_resource_base('', root), ()),))
        for uri, schema in (externals or {}).items():
            builder.walk(schema, ((_resource_base(urldefrag(uri).url, schema), ()),))

        return cls(
            root=root,
            root_base=_resource_base('', root),
            resources=MappingProxyType(builder.resources),
            pointers=MappingProxyType(builder.pointers),
            anchors=MappingProxyType(builder.anchors),
            dynamic_anchors=MappingProxyType(builder.dynamic_anchors),
            bases=MappingProxyType(builder.bases),
        )

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------

    def base_of(self, node: SchemaNode) -> str:
        """Base URI of the innermost resource containing ``node``."""
        return self.bases.get(id(node), self.root_base)

    def lookup_pointer(self, pointer: str, base: str | None = None) -> SchemaNode | None:
        """Node at a JSON pointer (``''`` or ``'/$defs/User'``) within a resource."""
        base = self.root_base if base is None else base
        return self.pointers.get((base, to_pointer(parse_pointer(pointer))))

    def lookup_anchor(self, name: str, base: str | None = None) -> SchemaNode | None:
        base = self.root_base if base is None else base
        return self.anchors.get((base, name))

    def lookup_dynamic_anchor(
        self,
        name: str,
        scope_stack: Sequence[SchemaNode],
        order: DynamicScopeOrder = 'innermost',
    ) -> SchemaNode | None:
        """First schema in the dynamic scope that carries ``$dynamicAnchor: name``.

        A scope entry matches when it carries the anchor itself, or when it is the
        root of a resource that defines the anchor somewhere inside it.
        """
        entries = scope_stack if order == 'outermost' else reversed(scope_stack)
        for entry in entries:
            if entry.dynamic_anchor == name:
                return entry
            base = self.base_of(entry)
            if self.resources.get(base) is entry and (base, name) in self.dynamic_anchors:
                return self.dynamic_anchors[(base, name)]
        return None

    def lookup(self, reference: str, base: str) -> SchemaNode:
        """Resolve a ``$ref``-style URI reference against ``base``.

        Fragment forms: ``''`` is the resource root, ``'/...'`` a JSON pointer,
        anything else a plain-name anchor. Remote resources are never fetched.

        Raises:
            UnresolvedReferenceError: If the resource, pointer or anchor is not registered
        """
        if reference.startswith('#'):
            target_base, fragment = base, reference[1:]
        else:
            target_base, fragment = urldefrag(urljoin(base, reference))

        if target_base not in self.resources:
            raise UnresolvedReferenceError(reference, base, f"unknown resource '{target_base}'")

        if not fragment:
            return self.resources[target_base]
        if fragment.startswith('/'):
            node = self.lookup_pointer(fragment, target_base)
            if node is None:
                raise UnresolvedReferenceError(reference, base, f"no schema at pointer '{fragment}'")
            return node
        node = self.lookup_anchor(fragment, target_base)
        if node is None:
            raise UnresolvedReferenceError(reference, base, f"no anchor named '{fragment}'")
        return node


# ==============================================================================
# Builder
# ==============================================================================


def _resource_base(parent_base: str, node: SchemaNode) -> str:
    if node.id is None:
        return parent_base
    return urldefrag(urljoin(parent_base, node.id)).url


class _RegistryBuilder:
    """Mutable tables filled by one depth-first walk."""

    def __init__(self) -> None:
        self.resources: dict[str, SchemaNode] = {}
        self.pointers: dict[tuple[str, str], SchemaNode] = {}
        self.anchors: dict[tuple[str, str], SchemaNode] = {}
        self.dynamic_anchors: dict[tuple[str, str], SchemaNode] = {}
        self.bases: dict[int, str] = {}

    def walk(self, node: SchemaNode, scopes: tuple[_Scope, ...]) -> None:
        """Record ``node``; ``scopes`` holds (resource base, path within it), innermost last."""
        base = scopes[-1][0]
        is_walk_root = len(scopes) == 1 and not scopes[0][1]
        if node.id is not None or is_walk_root:
            self.resources.setdefault(base, node)

        for scope_base, path in scopes:
            self.pointers.setdefault((scope_base, to_pointer(path)), node)
        self.bases.setdefault(id(node), base)

        if node.anchor is not None:
            self._add_anchor(self.anchors, base, node.anchor, node)
        if node.dynamic_anchor is not None:
            # A $dynamicAnchor also works as a plain-name fragment for $ref
            self._add_anchor(self.anchors, base, node.dynamic_anchor, node)
            self._add_anchor(self.dynamic_anchors, base, node.dynamic_anchor, node)

        for relative, child in iter_subschemas(node):
            child_scopes = tuple((scope_base, path + relative) for scope_base, path in scopes)
            if child.id is not None:
                child_scopes += ((_resource_base(base, child), ()),)
            self.walk(child, child_scopes)

    @staticmethod
    def _add_anchor(table: dict[tuple[str, str], SchemaNode], base: str, name: str, node: SchemaNode) -> None:
        existing = table.get((base, name))
        if existing is not None and existing is not node:
            raise DuplicateAnchorError(base, name)
        table[(base, name)] = node
