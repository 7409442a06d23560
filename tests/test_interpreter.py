"""Tests for step evaluation: dispatch, parameters, failures and hooks."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import pytest

from pytest_blocks.errors import LeafExecutionError
from pytest_blocks.extensions import Plugin, PluginHooks, create_action_block, create_value_block
from pytest_blocks.schema import Status, StepNode
from tests.examples.plugins import example

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.core import ExecutionEnvironment


@pytest.fixture
def calls(environment: 'ExecutionEnvironment') -> list[Any]:
    """Register a `counter` block recording every invocation."""
    recorded: list[Any] = []

    def counter(params: Any, context: Any) -> Any:  # noqa: ANN401
        recorded.append(params.get('VALUE'))
        return params.get('VALUE')

    environment.register_block(create_value_block(
        'counter',
        counter,
        inputs=[{'name': 'VALUE', 'kind': 'value'}],
    ))

    return recorded


def test_plain_output(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Record the value returned by a block."""
    context.set_variable('name', 'Alice')

    [result] = run_steps([{'type': 'logic_text', 'params': {'TEXT': 'Hi ${name}'}}], context)

    assert result.status == Status.PASSED
    assert result.output == 'Hi Alice'
    assert result.duration >= 0


def test_nested_steps_evaluated_once(run_steps: 'Callable[..., Any]', calls: list[Any],
                                     context: 'ExecutionContext') -> None:
    """Evaluate nested value steps exactly once and use their output."""
    [result] = run_steps([{
        'id': 'set',
        'type': 'logic_set_variable',
        'params': {
            'NAME': 'total',
            'VALUE': {'id': 'inner', 'type': 'counter', 'params': {'VALUE': 3}},
        },
    }], context)

    assert result.status == Status.PASSED
    assert calls == [3]
    assert context.get_variable('total') == 3
    assert result.inputs['VALUE'].step_id == 'inner'
    assert result.inputs['VALUE'].output == 3


def test_parameters_order_and_resolution(environment: 'ExecutionEnvironment',
                                         run_steps: 'Callable[..., Any]',
                                         context: 'ExecutionContext') -> None:
    """Resolve declared inputs in order, then undeclared ones."""
    environment.register_block(create_value_block(
        'collect',
        lambda params, context: list(params.items()),
        inputs=[
            {'name': 'B', 'kind': 'field'},
            {'name': 'A', 'kind': 'field'},
            {'name': 'C', 'kind': 'field', 'default': 'fallback'},
            {'name': 'DO', 'kind': 'statement'},
        ],
    ))
    context.set_variable('x', 42)

    [result] = run_steps([{
        'type': 'collect',
        'params': {'EXTRA': ['${x}'], 'A': '${x}', 'B': 2},
    }], context)

    assert result.output == [('B', 2), ('A', '42'), ('C', 'fallback'), ('EXTRA', ['42'])]


def test_missing_required_input(environment: 'ExecutionEnvironment',
                                run_steps: 'Callable[..., Any]',
                                context: 'ExecutionContext') -> None:
    """Fail the step when a required input is absent."""
    environment.register_block(create_value_block(
        'needs',
        lambda params, context: params['X'],
        inputs=[{'name': 'X', 'required': True}],
    ))

    [result] = run_steps([{'type': 'needs'}], context)

    assert result.status == Status.FAILED
    assert result.error.code == 'resolve_error'
    assert result.error.message == "Missing required input 'X' of 'needs'"


def test_unknown_block_type(run_steps: 'Callable[..., Any]', calls: list[Any],
                            context: 'ExecutionContext') -> None:
    """Fail without invoking any executor, nested ones included."""
    results = run_steps([
        {'type': 'missing_block', 'params': {'VALUE': {'type': 'counter', 'params': {'VALUE': 1}}}},
        {'type': 'counter', 'params': {'VALUE': 2}},
    ], context)

    assert len(results) == 1
    assert results[0].status == Status.FAILED
    assert results[0].error.code == 'unknown_block_type'
    assert results[0].error.message == "Unknown block type: 'missing_block'"
    assert calls == []


def test_leaf_exception_wrapped(environment: 'ExecutionEnvironment',
                                run_steps: 'Callable[..., Any]',
                                context: 'ExecutionContext') -> None:
    """Wrap arbitrary executor exceptions keeping the cause and trace."""
    def broken(params: Any, context: Any) -> None:  # noqa: ANN401
        raise ValueError('boom')

    environment.register_block(create_action_block('broken', broken))

    [result] = run_steps([{'id': 'leaf', 'type': 'broken'}], context)

    assert result.status == Status.FAILED
    assert result.error.code == 'leaf_error'
    assert result.error.message == 'boom'
    assert 'ValueError: boom' in result.error.trace
    assert isinstance(result.exception, LeafExecutionError)
    assert isinstance(result.exception.__cause__, ValueError)
    assert result.exception.context['step_id'] == 'leaf'


def test_failure_stops_statement_list(run_steps: 'Callable[..., Any]',
                                      context: 'ExecutionContext') -> None:
    """Stop at the first failing step."""
    results = run_steps([
        {'type': 'logic_set_variable', 'params': {'NAME': 'first', 'VALUE': 1}},
        {'type': 'logic_fail', 'params': {'MESSAGE': 'Stop ${first}'}},
        {'type': 'logic_set_variable', 'params': {'NAME': 'second', 'VALUE': 2}},
    ], context)

    assert [result.status for result in results] == [Status.PASSED, Status.FAILED]
    assert results[1].error.message == 'Stop 1'
    assert context.get_variable('second') is None


def test_hard_assertion(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Fail the step on a hard assertion."""
    results = run_steps([
        {'type': 'logic_assert', 'params': {'CONDITION': False, 'MESSAGE': 'Must hold'}},
        {'type': 'logic_comment'},
    ], context)

    assert len(results) == 1
    assert results[0].status == Status.FAILED
    assert results[0].error.code == 'assertion_failed'
    assert results[0].error.message == 'Must hold'
    assert not results[0].soft


def test_soft_assertion_continues(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Mark the step failed softly and keep running siblings."""
    context.soft_assertions = True

    results = run_steps([
        {'id': 'check', 'type': 'logic_assert', 'params': {'CONDITION': 'false', 'MESSAGE': 'first'}},
        {'type': 'logic_set_variable', 'params': {'NAME': 'after', 'VALUE': 1}},
    ], context)

    assert [result.status for result in results] == [Status.FAILED, Status.PASSED]
    assert results[0].soft
    assert results[0].error.code == 'soft_assertion'
    assert context.get_variable('after') == 1
    assert [(error.message, error.step_id) for error in context.soft_errors] == [('first', 'check')]


def test_async_executor(environment: 'ExecutionEnvironment', run_steps: 'Callable[..., Any]',
                        context: 'ExecutionContext') -> None:
    """Await coroutine executors."""
    environment.register_plugin(example)

    [result] = run_steps([{'type': 'example_fetch', 'params': {'URL': 'https://example.com'}}], context)

    assert result.output == {'url': 'https://example.com', 'status': 200}
    assert context.get_variable('lastUrl') == 'https://example.com'


def test_cancelled_before_step(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Fail steps once cancellation is requested."""
    context.abort()

    [result] = run_steps([{'type': 'logic_comment'}], context)

    assert result.status == Status.FAILED
    assert result.error.code == 'cancelled'


def test_evaluate(environment: 'ExecutionEnvironment', context: 'ExecutionContext') -> None:
    """Return the output of a step or raise its failure."""
    interpreter = environment.interpreter()

    value = asyncio.run(interpreter.evaluate(
        StepNode.model_validate({
            'type': 'logic_arithmetic',
            'params': {
                'A': {'type': 'logic_number', 'params': {'NUM': '5'}},
                'OP': 'multiply',
                'B': 2,
            },
        }),
        context,
    ))

    assert value == 10

    with pytest.raises(LeafExecutionError, match=r'^Division by zero'):
        asyncio.run(interpreter.evaluate(
            StepNode(type='logic_arithmetic', params={'A': 1, 'OP': 'divide', 'B': 0}),
            context,
        ))


def test_step_hooks(environment: 'ExecutionEnvironment', run_steps: 'Callable[..., Any]',
                    context: 'ExecutionContext') -> None:
    """Invoke step hooks around statement steps only."""
    events: list[tuple[str, str]] = []

    async def after_step(step: StepNode, context: Any, result: Any) -> None:  # noqa: ANN401
        events.append(('after', step.type))

    environment.register_plugin(Plugin(
        name='recorder',
        hooks=PluginHooks(
            before_step=lambda step, context: events.append(('before', step.type)),
            after_step=after_step,
        ),
    ))

    run_steps([{
        'type': 'logic_set_variable',
        'params': {'NAME': 'x', 'VALUE': {'type': 'logic_number', 'params': {'NUM': 1}}},
    }], context)

    assert events == [('before', 'logic_set_variable'), ('after', 'logic_set_variable')]


def test_failing_hooks(environment: 'ExecutionEnvironment', run_steps: 'Callable[..., Any]',
                       context: 'ExecutionContext', caplog: pytest.LogCaptureFixture) -> None:
    """Fail the step on a `before_step` error, only log `after_step` errors."""
    def explode(**kwargs: Any) -> None:  # noqa: ANN401
        raise RuntimeError('hook failed')

    environment.register_plugin(Plugin(name='after', hooks=PluginHooks(after_step=explode)))

    [result] = run_steps([{'type': 'logic_comment'}], context)

    assert result.status == Status.PASSED
    assert 'Hook after_step failed' in caplog.text

    environment.register_plugin(Plugin(name='before', hooks=PluginHooks(before_step=explode)))

    [result] = run_steps([{'type': 'logic_comment'}], context)

    assert result.status == Status.FAILED
    assert result.error.message == 'hook failed'


def test_failure_artifact(environment: 'ExecutionEnvironment', run_steps: 'Callable[..., Any]',
                          context: 'ExecutionContext') -> None:
    """Attach artifacts to failed steps of snapshot blocks only."""
    environment.register_plugin(example)

    async def snapshot(step: StepNode, context: Any, error: Any) -> str:  # noqa: ANN401
        return f'{step.id}: {error.message}'

    environment.artifact_hook = snapshot

    results = run_steps([
        {'type': 'logic_try_catch', 'slots': {
            'TRY': [{'id': 'plain', 'type': 'logic_fail'}],
        }},
        {'id': 'fetch', 'type': 'example_fetch', 'params': {'URL': 'https://fail.example.com'}},
    ], context)

    assert results[0].children[0].artifact is None
    assert results[1].status == Status.FAILED
    assert results[1].artifact == 'fetch: Unable to fetch https://fail.example.com'


def test_failing_artifact_hook(environment: 'ExecutionEnvironment', run_steps: 'Callable[..., Any]',
                               context: 'ExecutionContext', caplog: pytest.LogCaptureFixture) -> None:
    """Keep the outcome when the artifact hook fails."""
    environment.register_plugin(example)

    def snapshot(step: StepNode, context: Any, error: Any) -> None:  # noqa: ANN401
        raise OSError('disk full')

    environment.artifact_hook = snapshot

    with caplog.at_level(logging.ERROR):
        [result] = run_steps([{'type': 'example_fetch', 'params': {'URL': 'fail'}}], context)

    assert result.status == Status.FAILED
    assert result.error.message == 'Unable to fetch fail'
    assert result.artifact is None
    assert 'Failed to capture artifact' in caplog.text


def quotient(a: Any, b: Any) -> dict[str, Any]:  # noqa: ANN401
    return {'type': 'logic_arithmetic', 'params': {'A': a, 'OP': 'divide', 'B': b}}


@pytest.mark.parametrize('a, op, b, expected', (
    pytest.param(quotient(6, 2), 'eq', 3, True, id='whole quotient equals integer'),
    pytest.param(quotient(6, 2), 'neq', 3, False, id='whole quotient not unequal'),
    pytest.param(quotient(7, 2), 'eq', 3.5, True, id='fractional quotient'),
    pytest.param(quotient(7, 2), 'eq', 3, False, id='fractional quotient differs'),
    pytest.param(2.0, 'eq', 2, True, id='float literal'),
))
def test_compare_whole_numbers(a: Any, op: str, b: Any, expected: bool,  # noqa: ANN401, FBT001
                               run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Treat whole-number floats and integers as equal values."""
    [result] = run_steps([{'type': 'logic_compare', 'params': {'A': a, 'OP': op, 'B': b}}], context)

    assert result.status == Status.PASSED
    assert result.output is expected


def test_whole_quotient_substitution(run_steps: 'Callable[..., Any]', context: 'ExecutionContext') -> None:
    """Substitute a whole-number quotient without a fractional part."""
    [_, result] = run_steps([
        {'type': 'logic_set_variable', 'params': {'NAME': 'half', 'VALUE': quotient(6, 2)}},
        {'type': 'logic_text', 'params': {'TEXT': 'half=${half}'}},
    ], context)

    assert context.get_variable('half') == 3
    assert result.output == 'half=3'
