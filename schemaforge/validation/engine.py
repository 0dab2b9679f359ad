"""
Validation engine - recursive descent of a JSON value against a schema tree.

Every variant is matched exhaustively. All failures at every level are collected
(never first-failure), each located by instance path and schema path. Reference
problems (unresolved targets, reference cycles) are reported as errors, not raised.
"""

from __future__ import annotations

import functools
import math
import re
from collections.abc import Mapping, Sequence
from fractions import Fraction
from typing import Any

import attrs

from schemaforge.exceptions import SchemaValidationError, UnresolvedReferenceError
from schemaforge.json_values import canonical_key, is_integer_value, json_equal, json_kind, to_pointer
from schemaforge.protocols import LoggerProtocol, NullLogger
from schemaforge.registry import Registry
from schemaforge.schemas.nodes import (
    AnyNode,
    ArrayNode,
    BooleanNode,
    CompositionNode,
    ConditionalNode,
    ConstNode,
    DefsNode,
    DynamicRefNode,
    EnumNode,
    IntegerNode,
    NullNode,
    NumberNode,
    ObjectNode,
    RefNode,
    SchemaNode,
    StringNode,
    type_keyword,
)
from schemaforge.types import PathSegment
from schemaforge.validation.context import ValidationContext, ValidationOptions
from schemaforge.validation.errors import ValidationError
from schemaforge.validation.formats import check_format
from schemaforge.validation.resolver import resolve_reference

__all__ = [
    'SchemaValidator',
    'is_valid',
    'validate',
]


# ==============================================================================
# Public API
# ==============================================================================


def validate(
    schema: SchemaNode,
    value: Any,
    registry: Registry | None = None,
    *,
    options: ValidationOptions | None = None,
) -> list[ValidationError]:
    """Validate a decoded JSON value; an empty list means the value conforms.

    Args:
        schema: Schema to validate against
        value: Decoded JSON value (dict / list / str / int / float / bool / None)
        registry: Index used for $ref resolution (built from ``schema`` when omitted)
        options: Validation switches (from settings when omitted)
    """
    ctx = ValidationContext(
        registry=registry if registry is not None else Registry.build(schema),
        options=options if options is not None else ValidationOptions.from_settings(),
    )
    with ctx.in_scope(schema):
        return _check(schema, value, ctx)


def is_valid(
    schema: SchemaNode,
    value: Any,
    registry: Registry | None = None,
    *,
    options: ValidationOptions | None = None,
) -> bool:
    return not validate(schema, value, registry, options=options)


@attrs.frozen
class SchemaValidator:
    """A schema with its registry built once, reusable across calls and threads."""

    schema: SchemaNode
    registry: Registry
    options: ValidationOptions

    @classmethod
    def for_schema(
        cls,
        schema: SchemaNode,
        *,
        externals: Mapping[str, SchemaNode] | None = None,
        options: ValidationOptions | None = None,
        logger: LoggerProtocol | None = None,
    ) -> SchemaValidator:
        """Build the registry for ``schema`` (plus pre-registered external roots).

        Raises:
            DuplicateAnchorError: If a resource defines the same anchor twice
        """
        logger = logger or NullLogger()
        registry = Registry.build(schema, externals)
        logger.info(f'Indexed {len(registry.pointers)} schema locations in {len(registry.resources)} resource(s)')
        return cls(
            schema=schema,
            registry=registry,
            options=options if options is not None else ValidationOptions.from_settings(),
        )

    def validate(self, value: Any) -> list[ValidationError]:
        return validate(self.schema, value, self.registry, options=self.options)

    def is_valid(self, value: Any) -> bool:
        return not self.validate(value)

    def check(self, value: Any) -> None:
        """Raise SchemaValidationError listing every failure when ``value`` does not conform."""
        errors = self.validate(value)
        if errors:
            raise SchemaValidationError(errors)


# ==============================================================================
# Dispatch
# ==============================================================================


def _check(node: SchemaNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    # An embedded resource ($id) joins the dynamic scope while it is being validated
    if node.id is not None and ctx.dynamic_scope[-1] is not node:
        with ctx.in_scope(node):
            return _dispatch(node, value, ctx)
    return _dispatch(node, value, ctx)


def _dispatch(node: SchemaNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    match node:
        case StringNode():
            return _check_string(node, value, ctx)
        case NumberNode() | IntegerNode():
            return _check_number(node, value, ctx)
        case BooleanNode():
            if not isinstance(value, bool):
                return [_type_mismatch('boolean', value, ctx)]
            return _check_const_enum(value, node.const_value, None, ctx)
        case NullNode():
            return [] if value is None else [_type_mismatch('null', value, ctx)]
        case ArrayNode():
            return _check_array(node, value, ctx)
        case ObjectNode():
            return _check_object(node, value, ctx)
        case CompositionNode():
            return _check_composition(node, value, ctx)
        case ConditionalNode():
            return _check_conditional(node, value, ctx)
        case RefNode() | DynamicRefNode():
            return _check_reference(node, value, ctx)
        case DefsNode():
            return [] if node.underlying is None else _check(node.underlying, value, ctx)
        case EnumNode():
            if any(json_equal(value, option) for option in node.values):
                return []
            return [ctx.error('enum', 'EnumMismatch', f'{_show(value)} is not one of {_show(list(node.values))}')]
        case ConstNode():
            if json_equal(value, node.value):
                return []
            return [ctx.error('const', 'ConstMismatch', f'{_show(value)} is not equal to {_show(node.value)}')]
        case AnyNode():
            return []
        case _:
            # FAIL FAST: a new variant must be validated here
            raise ValueError(f'Unhandled schema node: {type(node).__name__}')


# ==============================================================================
# Primitives
# ==============================================================================


def _check_string(node: StringNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    if not isinstance(value, str):
        return [_type_mismatch('string', value, ctx)]

    errors: list[ValidationError] = []
    length = len(value)  # code points
    if node.min_length is not None and length < node.min_length:
        errors.append(
            ctx.error('minLength', 'LengthViolation', f'{_show(value)} is shorter than {node.min_length} characters')
        )
    if node.max_length is not None and length > node.max_length:
        errors.append(
            ctx.error('maxLength', 'LengthViolation', f'{_show(value)} is longer than {node.max_length} characters')
        )
    if node.pattern is not None and _compiled(node.pattern).search(value) is None:
        errors.append(ctx.error('pattern', 'PatternMismatch', f'{_show(value)} does not match {node.pattern!r}'))
    if (
        node.format is not None
        and ctx.options.format_assertion
        and not check_format(node.format, value, ctx.options.formats)
    ):
        errors.append(ctx.error('format', 'FormatViolation', f'{_show(value)} is not a valid {node.format}'))
    errors.extend(_check_const_enum(value, node.const_value, node.enum_values, ctx))
    return errors


def _check_number(node: NumberNode | IntegerNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    if isinstance(node, IntegerNode):
        if not is_integer_value(value):
            return [_type_mismatch('integer', value, ctx)]
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        return [_type_mismatch('number', value, ctx)]

    errors: list[ValidationError] = []
    if node.minimum is not None and value < node.minimum:
        errors.append(ctx.error('minimum', 'RangeViolation', f'{value} is less than the minimum of {node.minimum}'))
    if node.maximum is not None and value > node.maximum:
        errors.append(
            ctx.error('maximum', 'RangeViolation', f'{value} is greater than the maximum of {node.maximum}')
        )
    if node.exclusive_minimum is not None and value <= node.exclusive_minimum:
        errors.append(
            ctx.error(
                'exclusiveMinimum',
                'RangeViolation',
                f'{value} is less than or equal to the exclusive minimum of {node.exclusive_minimum}',
            )
        )
    if node.exclusive_maximum is not None and value >= node.exclusive_maximum:
        errors.append(
            ctx.error(
                'exclusiveMaximum',
                'RangeViolation',
                f'{value} is greater than or equal to the exclusive maximum of {node.exclusive_maximum}',
            )
        )
    if node.multiple_of is not None and not _is_multiple(value, node.multiple_of):
        errors.append(ctx.error('multipleOf', 'RangeViolation', f'{value} is not a multiple of {node.multiple_of}'))
    errors.extend(_check_const_enum(value, node.const_value, node.enum_values, ctx))
    return errors


def _check_const_enum(
    value: Any,
    const_value: Any,
    enum_values: Sequence[Any] | None,
    ctx: ValidationContext,
) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if const_value is not None and not json_equal(value, const_value):
        errors.append(ctx.error('const', 'ConstMismatch', f'{_show(value)} is not equal to {_show(const_value)}'))
    if enum_values is not None and not any(json_equal(value, option) for option in enum_values):
        errors.append(ctx.error('enum', 'EnumMismatch', f'{_show(value)} is not one of {_show(list(enum_values))}'))
    return errors


def _is_multiple(value: int | float, divisor: int | float) -> bool:
    """Exact rational check on the decimal literals, so 0.3 is a multiple of 0.1 at any magnitude."""
    if any(isinstance(number, float) and not math.isfinite(number) for number in (value, divisor)):
        return False
    return Fraction(str(value)) % Fraction(str(divisor)) == 0


# ==============================================================================
# Arrays and objects
# ==============================================================================


def _check_array(node: ArrayNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    if not isinstance(value, (list, tuple)):
        return [_type_mismatch('array', value, ctx)]

    errors: list[ValidationError] = []
    with ctx.at_schema('items'):
        for index, item in enumerate(value):
            with ctx.at_instance(index):
                errors.extend(_check(node.items, item, ctx))

    count = len(value)
    if node.min_items is not None and count < node.min_items:
        errors.append(
            ctx.error('minItems', 'LengthViolation', f'array has {count} items, fewer than {node.min_items}')
        )
    if node.max_items is not None and count > node.max_items:
        errors.append(ctx.error('maxItems', 'LengthViolation', f'array has {count} items, more than {node.max_items}'))
    if node.unique_items:
        seen: dict[Any, int] = {}
        for index, item in enumerate(value):
            key = canonical_key(item)
            if key in seen:
                errors.append(
                    ctx.error(
                        'uniqueItems',
                        'UniquenessViolation',
                        f'items at index {seen[key]} and {index} are equal',
                    )
                )
                break
            seen[key] = index
    return errors


def _check_object(node: ObjectNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    if not isinstance(value, Mapping):
        return [_type_mismatch('object', value, ctx)]

    errors: list[ValidationError] = []
    for name in node.required:
        if name not in value:
            errors.append(ctx.error('required', 'RequiredPropertyMissing', f"missing required property '{name}'"))
    for trigger, names in node.dependent_required.items():
        if trigger not in value:
            continue
        for name in names:
            if name not in value:
                errors.append(
                    ctx.error(
                        'dependentRequired',
                        'RequiredPropertyMissing',
                        f"property '{name}' is required when '{trigger}' is present",
                    )
                )

    count = len(value)
    if node.min_properties is not None and count < node.min_properties:
        errors.append(
            ctx.error(
                'minProperties', 'LengthViolation', f'object has {count} properties, fewer than {node.min_properties}'
            )
        )
    if node.max_properties is not None and count > node.max_properties:
        errors.append(
            ctx.error(
                'maxProperties', 'LengthViolation', f'object has {count} properties, more than {node.max_properties}'
            )
        )

    for key, item in value.items():
        with ctx.at_instance(key):
            if node.property_names is not None:
                with ctx.at_schema('propertyNames'):
                    errors.extend(_check(node.property_names, key, ctx))
            errors.extend(_check_property(node, key, item, ctx))
    return errors


def _check_property(node: ObjectNode, key: str, item: Any, ctx: ValidationContext) -> list[ValidationError]:
    """Declared, pattern and additional property checks for one member (instance path already at ``key``)."""
    errors: list[ValidationError] = []
    matched = False
    if key in node.properties:
        matched = True
        with ctx.at_schema('properties', key):
            errors.extend(_check(node.properties[key], item, ctx))
    for pattern, schema in node.pattern_properties.items():
        if _compiled(pattern).search(key) is not None:
            matched = True
            with ctx.at_schema('patternProperties', pattern):
                errors.extend(_check(schema, item, ctx))
    if matched:
        return errors

    match node.additional_properties:
        case None | True:
            pass
        case False:
            errors.append(
                ctx.error('additionalProperties', 'AdditionalPropertyNotAllowed', f"property '{key}' is not allowed")
            )
        case schema:
            with ctx.at_schema('additionalProperties'):
                errors.extend(_check(schema, item, ctx))
    return errors


# ==============================================================================
# Applicators
# ==============================================================================


def _check_composition(node: CompositionNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    combinator = node.combinator
    results: list[list[ValidationError]] = []
    for index, branch in enumerate(node.branches):
        if node.inline:
            segments: tuple[PathSegment, ...] = ()
        elif combinator == 'not':
            segments = (combinator,)
        else:
            segments = (combinator, index)
        with ctx.at_schema(*segments):
            results.append(_check(branch, value, ctx))

    if node.inline and combinator == 'anyOf':
        return _check_type_union(node, value, results, ctx)

    match combinator:
        case 'allOf':
            return [error for branch_errors in results for error in branch_errors]
        case 'anyOf':
            if any(not branch_errors for branch_errors in results):
                return []
            return [
                ctx.error(
                    'anyOf',
                    'CompositionFailure',
                    f'value does not match any of the {len(results)} branches',
                    composition='AnyOf',
                    causes=[error for branch_errors in results for error in branch_errors],
                )
            ]
        case 'oneOf':
            matched = sum(1 for branch_errors in results if not branch_errors)
            if matched == 1:
                return []
            if matched == 0:
                return [
                    ctx.error(
                        'oneOf',
                        'CompositionFailure',
                        f'no branch matched (of {len(results)})',
                        composition='OneOfNoMatch',
                        causes=[error for branch_errors in results for error in branch_errors],
                    )
                ]
            return [
                ctx.error(
                    'oneOf',
                    'CompositionFailure',
                    f'ambiguous: {matched} branches matched',
                    composition='OneOfAmbiguous',
                )
            ]
        case 'not':
            if results[0]:
                return []
            return [ctx.error('not', 'CompositionFailure', 'value must not match the schema', composition='Not')]
        case _:
            raise ValueError(f'Unhandled combinator: {combinator}')


def _check_type_union(
    node: CompositionNode,
    value: Any,
    results: list[list[ValidationError]],
    ctx: ValidationContext,
) -> list[ValidationError]:
    """A ``type`` array: report the constraints of the types the value has, or one type mismatch."""
    if any(not branch_errors for branch_errors in results):
        return []
    type_location = (*ctx.schema_path, 'type')
    applicable = [
        branch_errors
        for branch_errors in results
        if not any(error.keyword == 'type' and error.schema_path == type_location for error in branch_errors)
    ]
    if applicable:
        return [error for branch_errors in applicable for error in branch_errors]
    names = [name for branch in node.branches if isinstance(name := type_keyword(branch), str)]
    return [_type_mismatch(' or '.join(names), value, ctx)]


def _check_conditional(node: ConditionalNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    with ctx.at_schema('if'):
        passed = not _check(node.if_schema, value, ctx)
    if passed and node.then_schema is not None:
        with ctx.at_schema('then'):
            return _check(node.then_schema, value, ctx)
    if not passed and node.else_schema is not None:
        with ctx.at_schema('else'):
            return _check(node.else_schema, value, ctx)
    return []


def _check_reference(node: RefNode | DynamicRefNode, value: Any, ctx: ValidationContext) -> list[ValidationError]:
    keyword, reference = ('$ref', node.uri) if isinstance(node, RefNode) else ('$dynamicRef', node.fragment)
    try:
        target = resolve_reference(node, ctx)
    except UnresolvedReferenceError as e:
        return [ctx.error(keyword, 'UnresolvedReference', str(e))]

    if ctx.reference_key(target) in ctx.active_references:
        location = to_pointer(ctx.instance_path) or '<root>'
        return [
            ctx.error(
                keyword,
                'CyclicReference',
                f"reference '{reference}' re-enters itself at {location} without consuming input",
            )
        ]

    with ctx.at_schema(keyword), ctx.following(target):
        return _check(target, value, ctx)


# ==============================================================================
# Helpers
# ==============================================================================


@functools.lru_cache(maxsize=512)
def _compiled(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _type_mismatch(expected: str, value: Any, ctx: ValidationContext) -> ValidationError:
    return ctx.error('type', 'TypeMismatch', f'expected {expected}, got {json_kind(value)}')


def _show(value: Any) -> str:
    """Short rendering of an instance value for messages."""
    text = repr(value)
    return text if len(text) <= 60 else text[:57] + '...'
