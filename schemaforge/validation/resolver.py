"""
Reference resolution for $ref and $dynamicRef.

Static references resolve against the base URI of the resource that contains
them. Dynamic references first search the dynamic scope (resources entered and
reference targets followed so far) for a matching $dynamicAnchor, then fall
back to static resolution of the same reference. Nothing is ever fetched: a
resource that was not registered is unresolved.
"""

from __future__ import annotations

from schemaforge.schemas.nodes import DynamicRefNode, RefNode, SchemaNode
from schemaforge.validation.context import ValidationContext

__all__ = [
    'resolve_reference',
]


def resolve_reference(node: RefNode | DynamicRefNode, ctx: ValidationContext) -> SchemaNode:
    """Target schema of a reference node.

    Raises:
        UnresolvedReferenceError: If no registered schema matches the reference
    """
    registry = ctx.registry
    base = registry.base_of(node)
    match node:
        case RefNode():
            return registry.lookup(node.uri, base)
        case DynamicRefNode():
            target = registry.lookup_dynamic_anchor(
                node.anchor_name,
                ctx.dynamic_scope,
                ctx.options.dynamic_scope_order,
            )
            if target is not None:
                return target
            return registry.lookup(node.fragment, base)
        case _:
            # FAIL FAST: only reference nodes are resolvable
            raise ValueError(f'Unhandled reference node: {type(node).__name__}')
