"""Tests for data set blocks."""

from typing import TYPE_CHECKING, Any

import pytest

from pytest_blocks.schema import DataRow, Status

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.core import ExecutionEnvironment


def test_data_table(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Build named rows from header and row text, decoding JSON cells."""
    context.set_variable('admin', 'root')

    [result] = run_steps([{
        'type': 'data_table',
        'params': {
            'HEADERS': 'username, password, expected',
            'ROWS': '${admin}, secret, true\n\n guest , 1234\n',
        },
    }], context)

    assert result.status == Status.PASSED
    assert result.output == [
        {'name': 'Row 1', 'values': {'username': 'root', 'password': 'secret', 'expected': True}},
        {'name': 'Row 2', 'values': {'username': 'guest', 'password': 1234, 'expected': None}},
    ]


def test_data_row(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Build one row from a name and a JSON object."""
    context.set_variable('who', 'alice')

    results = run_steps([
        {'type': 'data_row', 'params': {'NAME': 'admin', 'JSON': '{"user": "${who}", "age": 30}'}},
        {'type': 'data_row', 'params': {'JSON': '{}'}},
    ], context)

    assert [result.output for result in results] == [
        {'name': 'admin', 'values': {'user': 'alice', 'age': 30}},
        {'name': None, 'values': {}},
    ]


@pytest.mark.parametrize('text, message', (
    pytest.param('{"user":', 'Invalid row JSON', id='invalid json'),
    pytest.param('[1, 2]', 'Expected a JSON object of values, got list', id='not an object'),
))
def test_data_row_invalid(text: str, message: str,
                          run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Fail for row values that are not a JSON object."""
    [result] = run_steps([{'type': 'data_row', 'params': {'NAME': 'bad', 'JSON': text}}], context)

    assert result.status == Status.FAILED
    assert result.error.message.startswith(message)


@pytest.mark.parametrize('row, index, expected', (
    pytest.param(DataRow(name='admin', values={'user': 'root'}), 0, 'admin', id='named row'),
    pytest.param(DataRow(values={'user': 'guest'}), 1, 'Iteration 2', id='unnamed row'),
    pytest.param(None, None, 'Iteration 1', id='no data'),
))
def test_data_get_name(row: DataRow | None, index: int | None, expected: str,
                       environment: 'ExecutionEnvironment', run_steps: 'Callable[..., Any]') -> None:
    """Name the current data row, falling back to its iteration number."""
    context = environment.new_context(test_name='named', current_data=row, data_index=index)

    [result] = run_steps([{'type': 'data_get_name'}], context)

    assert result.status == Status.PASSED
    assert result.output == expected


def test_data_from_variable(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Read a data set from a variable, an empty one if unbound."""
    context.set_variable('users', [{'name': 'ann'}, {'name': 'bob'}])

    results = run_steps([
        {'type': 'data_from_variable', 'params': {'NAME': 'users'}},
        {'type': 'data_from_variable', 'params': {'NAME': 'nobody'}},
    ], context)

    assert [result.output for result in results] == [[{'name': 'ann'}, {'name': 'bob'}], []]


def test_data_table_iteration(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Iterate over the rows of a data table."""
    context.set_variable('seen', '')

    run_steps([{
        'type': 'data_foreach',
        'params': {
            'DATA': {'type': 'data_table', 'params': {'HEADERS': 'user', 'ROWS': 'ann\nbob'}},
            'ITEM_VAR': 'row',
        },
        'slots': {'DO': [{
            'type': 'logic_set_variable',
            'params': {'NAME': 'seen', 'VALUE': '${seen}${row.name}=${row.values.user};'},
        }]},
    }], context)

    assert context.get_variable('seen') == 'Row 1=ann;Row 2=bob;'
