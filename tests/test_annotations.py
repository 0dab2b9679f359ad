"""
Tests for constraint and metadata annotations.
"""

from __future__ import annotations

from typing import Annotated

import annotated_types
import pydantic
import pytest

from schemaforge.annotations import (
    Const,
    Default,
    Deprecated,
    Description,
    EnumValues,
    Examples,
    Format,
    MaxItems,
    MaxLength,
    Minimum,
    MinLength,
    MultipleOf,
    Pattern,
    ReadOnly,
    Title,
    UniqueItems,
    annotate,
    apply_annotations,
    collect_annotations,
)
from schemaforge.exceptions import IncompatibleAnnotationError
from schemaforge.schemas.nodes import (
    ArrayNode,
    BooleanNode,
    CompositionNode,
    DefaultValue,
    IntegerNode,
    NullNode,
    NumberNode,
    StringNode,
    nullable,
)


def test_string_constraints() -> None:
    node = apply_annotations(StringNode(), [MinLength(1), MaxLength(50), Pattern('^[a-z]+$'), Format('email')])
    assert node == StringNode(min_length=1, max_length=50, pattern='^[a-z]+$', format='email')


def test_numeric_constraints() -> None:
    node = apply_annotations(IntegerNode(), [Minimum(0), MultipleOf(5)])
    assert node == IntegerNode(minimum=0, multiple_of=5)


def test_array_constraints() -> None:
    node = apply_annotations(ArrayNode(items=StringNode()), [MaxItems(3), UniqueItems()])
    assert node.max_items == 3
    assert node.unique_items is True


def test_metadata_annotations() -> None:
    node = apply_annotations(
        NumberNode(),
        [Title('Price'), Description('Unit price'), Examples((1.5,)), Deprecated(), ReadOnly(), Default(0)],
    )
    assert node.title == 'Price'
    assert node.description == 'Unit price'
    assert node.examples == (1.5,)
    assert node.deprecated is True
    assert node.read_only is True
    assert node.default == DefaultValue(value=0)


def test_later_annotation_wins() -> None:
    assert apply_annotations(StringNode(), [MinLength(1), MinLength(3)]).min_length == 3


def test_constraints_target_non_null_branch_of_nullable() -> None:
    node = apply_annotations(nullable(StringNode()), [MinLength(2), Description('Nickname')])
    assert isinstance(node, CompositionNode)
    assert node.description == 'Nickname'
    assert node.branches == (StringNode(min_length=2), NullNode())


@pytest.mark.parametrize(
    ('node', 'annotation'),
    [
        (IntegerNode(), MinLength(1)),
        (StringNode(), Minimum(0)),
        (BooleanNode(), UniqueItems()),
        (ArrayNode(items=StringNode()), Pattern('a')),
    ],
    ids=['length-on-integer', 'minimum-on-string', 'unique-on-boolean', 'pattern-on-array'],
)
def test_incompatible_constraint(node: object, annotation: object) -> None:
    with pytest.raises(IncompatibleAnnotationError):
        apply_annotations(node, [annotation])  # type: ignore[arg-type]


def test_value_annotations_must_match_base_type() -> None:
    assert apply_annotations(StringNode(), [Const('x')]) == StringNode(const_value='x')
    assert apply_annotations(IntegerNode(), [EnumValues((1, 2))]) == IntegerNode(enum_values=(1, 2))
    with pytest.raises(IncompatibleAnnotationError, match='does not match the base type'):
        apply_annotations(StringNode(), [Const(1)])
    with pytest.raises(IncompatibleAnnotationError):
        apply_annotations(IntegerNode(), [EnumValues((1, True))])


def test_invalid_constraint_value_is_reported_against_annotation() -> None:
    with pytest.raises(IncompatibleAnnotationError) as exc_info:
        apply_annotations(StringNode(), [Pattern('(')])
    assert isinstance(exc_info.value.annotation, Pattern)


# ==============================================================================
# Collection from Annotated metadata
# ==============================================================================


def test_collect_translates_annotated_types() -> None:
    collected = collect_annotations(
        [annotated_types.Ge(0), annotated_types.Lt(10), annotated_types.MultipleOf(2), 'unrelated marker']
    )
    node = apply_annotations(IntegerNode(), collected)
    assert node == IntegerNode(minimum=0, exclusive_maximum=10, multiple_of=2)


def test_collect_expands_grouped_metadata() -> None:
    collected = collect_annotations([annotated_types.Interval(gt=0, le=100)])
    assert apply_annotations(NumberNode(), collected) == NumberNode(exclusive_minimum=0, maximum=100)


def test_length_bounds_follow_base_type() -> None:
    collected = collect_annotations([annotated_types.Len(1, 5)])
    assert apply_annotations(StringNode(), collected) == StringNode(min_length=1, max_length=5)
    array = apply_annotations(ArrayNode(items=StringNode()), collected)
    assert (array.min_items, array.max_items) == (1, 5)


def test_collect_reads_pydantic_field_info() -> None:
    info = pydantic.Field(ge=1, description='Quantity', title='Qty', examples=[3])
    node = apply_annotations(IntegerNode(), collect_annotations([info]))
    assert node == IntegerNode(minimum=1, description='Quantity', title='Qty', examples=(3,))


def test_collect_preserves_declaration_order() -> None:
    alias = Annotated[str, MinLength(1), Title('Name')]
    assert collect_annotations(alias.__metadata__) == [MinLength(1), Title('Name')]


def test_annotate_decorator_attaches_class_annotations() -> None:
    @annotate(Title('User'), Description('A registered user'))
    class User:
        pass

    expected = (Title('User'), Description('A registered user'))
    assert User.__schema_annotations__ == expected  # type: ignore[attr-defined]
