"""Tests for execution contexts."""

import asyncio
import logging
from typing import TYPE_CHECKING

import pytest

from pytest_blocks.context import ContextDict, StepLogger
from pytest_blocks.errors import ExecutionCancelled
from pytest_blocks.schema import DataRow

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext


def test_context_dict_lookup() -> None:
    """Resolve dotted paths, `None` when missing."""
    variables = ContextDict({'user': {'address': {'city': 'Oslo'}}, 'ids': [4, 5]})

    assert variables.lookup('user.address.city') == 'Oslo'
    assert variables.lookup('ids.1') == 5
    assert variables.lookup('user.phone') is None
    assert variables.lookup('unknown') is None


def test_set_and_get_variable(context: 'ExecutionContext') -> None:
    """Bind and read variables."""
    context.set_variable('user', {'name': 'Alice'})

    assert context.get_variable('user.name') == 'Alice'
    assert context.get_variable('missing') is None


def test_fork_isolation(context: 'ExecutionContext') -> None:
    """Copy variables and share procedures, resources and cancellation."""
    context.set_variable('shared', 1)
    context.resources['page'] = object()
    context.soft_assertions = True

    row = DataRow(name='first', values={'user': 'bob'})
    fork = context.fork(variables={'extra': 2}, current_data=row, data_index=0, test_name='forked')
    fork.set_variable('shared', 100)

    assert context.get_variable('shared') == 1
    assert context.get_variable('extra') is None
    assert fork.get_variable('extra') == 2
    assert fork.current_data is row
    assert fork.data_index == 0
    assert fork.soft_assertions is True
    assert fork.soft_errors == []
    assert fork.procedures is context.procedures
    assert fork.resources == context.resources
    assert fork.cancel is context.cancel
    assert fork.test_name == 'forked'


def test_raise_if_cancelled(context: 'ExecutionContext') -> None:
    """Raise after cancellation is requested."""
    context.raise_if_cancelled()
    context.abort()

    assert context.cancelled
    with pytest.raises(ExecutionCancelled, match=r'^Execution cancelled'):
        context.raise_if_cancelled()


def test_guard_returns_result(context: 'ExecutionContext') -> None:
    """Return the awaited result when not cancelled."""
    async def operation() -> int:
        await asyncio.sleep(0)
        return 42

    assert asyncio.run(context.guard(operation())) == 42


def test_guard_abandons_operation(context: 'ExecutionContext') -> None:
    """Abandon an in-flight operation on cancellation."""
    finished = []

    async def operation() -> None:
        await asyncio.sleep(10)
        finished.append(True)

    async def scenario() -> None:
        task = asyncio.create_task(context.guard(operation()))
        await asyncio.sleep(0)
        context.abort()
        await task

    with pytest.raises(ExecutionCancelled):
        asyncio.run(scenario())

    assert finished == []


def test_step_logger(caplog: pytest.LogCaptureFixture) -> None:
    """Prefix records with the test name and the data row."""
    logger = StepLogger(logging.getLogger('tests.context'), {
        'test_name': 'login',
        'data_iteration': 2,
    })

    with caplog.at_level(logging.INFO, logger='tests.context'):
        logger.info('Progress %d%%', 100)
        logger.bind(step='s1').info('Value', data={'rate': '5%'})

    assert caplog.messages == [
        '[login[2]] Progress 100%',
        "[login[2]] Value {'rate': '5%'}",
    ]
    assert caplog.records[1].test_name == 'login'
    assert caplog.records[1].step == 's1'
