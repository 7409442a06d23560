"""Built-in literal and operator blocks.

Literal blocks turn field text into typed values; operator blocks combine
the outputs of nested value steps. Equality compares the canonical JSON
encodings of both operands, so `1` equals `1` but not `"1"`, and structured
values compare by content.
"""

from json import JSONDecodeError, loads
from operator import add, mod, mul, sub, truediv
from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import LeafExecutionError
from pytest_blocks.extensions import create_value_block
from pytest_blocks.values import SEQUENCES, to_bool, to_json, to_number, to_text

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext


def _contains(container: Any, item: Any) -> bool:  # noqa: ANN401
    """Substring test for text, membership test for arrays."""
    if isinstance(container, str):
        return to_text(item) in container

    if isinstance(container, SEQUENCES):
        encoded = to_json(item)
        return any(to_json(value) == encoded for value in container)

    return False


COMPARISONS: dict[str, 'Callable[[Any, Any], bool]'] = {
    'eq': lambda a, b: to_json(a) == to_json(b),
    'neq': lambda a, b: to_json(a) != to_json(b),
    'lt': lambda a, b: to_number(a) < to_number(b),
    'lte': lambda a, b: to_number(a) <= to_number(b),
    'gt': lambda a, b: to_number(a) > to_number(b),
    'gte': lambda a, b: to_number(a) >= to_number(b),
    'contains': _contains,
}

ARITHMETIC: dict[str, 'Callable[[Any, Any], Any]'] = {
    'add': add,
    'subtract': sub,
    'multiply': mul,
    'divide': truediv,
    'modulo': mod,
}


def _parse_json(text: Any, expected: type, label: str) -> Any:  # noqa: ANN401
    """Decode a JSON field and check the decoded shape."""
    if isinstance(text, expected):
        return text

    try:
        value = loads(to_text(text))
    except JSONDecodeError as base:
        raise LeafExecutionError(f'Invalid {label} JSON: {base.msg}') from base

    if not isinstance(value, expected):
        raise LeafExecutionError(f'Expected a JSON {label}, got {type(value).__name__}')

    return value


def text(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> str:
    return to_text(params.get('TEXT', ''))


def number(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> int | float:
    return to_number(params.get('NUM', 0))


def boolean(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> bool:
    return to_bool(params.get('BOOL'))


def object_(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> dict[str, Any]:
    return _parse_json(params.get('JSON', '{}'), dict, 'object')


def array(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> list[Any]:
    return _parse_json(params.get('JSON', '[]'), list, 'array')


def compare(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> bool:
    """Compare `A` and `B` with `OP`.

    Raises:
        LeafExecutionError: If the operator is unknown.
    """
    operator = to_text(params.get('OP') or 'eq')
    if (comparison := COMPARISONS.get(operator)) is None:
        raise LeafExecutionError(f'Unknown comparison operator {operator!r}')

    return comparison(params.get('A'), params.get('B'))


def boolean_op(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> bool:
    a, b = to_bool(params.get('A')), to_bool(params.get('B'))
    if to_text(params.get('OP') or 'and') == 'or':
        return a or b

    return a and b


def not_(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> bool:
    return not to_bool(params.get('VALUE'))


def arithmetic(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> int | float:
    """Apply the arithmetic operator `OP` to `A` and `B`.

    Raises:
        LeafExecutionError: If the operator is unknown or the division
            is by zero.
    """
    operator = to_text(params.get('OP') or 'add')
    if (function := ARITHMETIC.get(operator)) is None:
        raise LeafExecutionError(f'Unknown arithmetic operator {operator!r}')

    try:
        return function(to_number(params.get('A')), to_number(params.get('B')))
    except ZeroDivisionError as base:
        raise LeafExecutionError('Division by zero') from base


blocks = [
    create_value_block(
        'logic_text',
        text,
        output='String',
        category='Logic',
        color='#795548',
        tooltip='A text value',
        inputs=[{'name': 'TEXT', 'kind': 'field', 'field_type': 'text', 'default': ''}],
    ),
    create_value_block(
        'logic_number',
        number,
        output='Number',
        category='Logic',
        color='#795548',
        tooltip='A number value',
        inputs=[{'name': 'NUM', 'kind': 'field', 'field_type': 'number', 'default': 0}],
    ),
    create_value_block(
        'logic_boolean',
        boolean,
        output='Boolean',
        category='Logic',
        color='#795548',
        tooltip='A boolean value',
        inputs=[{
            'name': 'BOOL',
            'kind': 'field',
            'field_type': 'dropdown',
            'options': [('true', 'true'), ('false', 'false')],
            'default': 'true',
        }],
    ),
    create_value_block(
        'logic_object',
        object_,
        output='Object',
        category='Logic',
        color='#795548',
        tooltip='Create a JSON object',
        inputs=[{'name': 'JSON', 'kind': 'field', 'field_type': 'text', 'default': '{}'}],
    ),
    create_value_block(
        'logic_array',
        array,
        output='Array',
        category='Logic',
        color='#795548',
        tooltip='Create an array',
        inputs=[{'name': 'JSON', 'kind': 'field', 'field_type': 'text', 'default': '[]'}],
    ),
    create_value_block(
        'logic_compare',
        compare,
        output='Boolean',
        category='Logic',
        color='#5C6BC0',
        tooltip='Compare two values',
        inputs=[
            {'name': 'A', 'kind': 'value', 'required': True},
            {
                'name': 'OP',
                'kind': 'field',
                'field_type': 'dropdown',
                'options': [
                    ('=', 'eq'), ('≠', 'neq'), ('<', 'lt'), ('≤', 'lte'),
                    ('>', 'gt'), ('≥', 'gte'), ('contains', 'contains'),
                ],
                'default': 'eq',
            },
            {'name': 'B', 'kind': 'value', 'required': True},
        ],
    ),
    create_value_block(
        'logic_boolean_op',
        boolean_op,
        output='Boolean',
        category='Logic',
        color='#5C6BC0',
        tooltip='Combine boolean values',
        inputs=[
            {'name': 'A', 'kind': 'value', 'check': 'Boolean', 'required': True},
            {
                'name': 'OP',
                'kind': 'field',
                'field_type': 'dropdown',
                'options': [('and', 'and'), ('or', 'or')],
                'default': 'and',
            },
            {'name': 'B', 'kind': 'value', 'check': 'Boolean', 'required': True},
        ],
    ),
    create_value_block(
        'logic_not',
        not_,
        output='Boolean',
        category='Logic',
        color='#5C6BC0',
        tooltip='Negate a boolean value',
        inputs=[{'name': 'VALUE', 'kind': 'value', 'check': 'Boolean', 'required': True}],
    ),
    create_value_block(
        'logic_arithmetic',
        arithmetic,
        output='Number',
        category='Logic',
        color='#5C6BC0',
        tooltip='Apply an arithmetic operator to two numbers',
        inputs=[
            {'name': 'A', 'kind': 'value', 'check': 'Number', 'required': True},
            {
                'name': 'OP',
                'kind': 'field',
                'field_type': 'dropdown',
                'options': [
                    ('+', 'add'), ('-', 'subtract'), ('×', 'multiply'),
                    ('÷', 'divide'), ('%', 'modulo'),
                ],
                'default': 'add',
            },
            {'name': 'B', 'kind': 'value', 'check': 'Number', 'required': True},
        ],
    ),
]
