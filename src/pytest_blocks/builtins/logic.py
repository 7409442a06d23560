"""Built-in logic and control flow blocks.

Control flow blocks do not run their statement slots themselves: they
return a control signal and the interpreter evaluates the slots on their
behalf. Text fields are resolved against the context before the executors
see them.
"""

from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import LeafExecutionError
from pytest_blocks.extensions import create_action_block, create_assertion_block, create_value_block
from pytest_blocks.schema import Branch, CollectionLoop, CountedLoop, TryCatch
from pytest_blocks.values import MAPPINGS, SEQUENCES, to_bool, to_number, to_text

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext

#: Values accepted by `logic_log` for its `LEVEL` field.
LOG_LEVELS = {
    'debug': 'debug',
    'info': 'info',
    'warn': 'warning',
    'warning': 'warning',
    'error': 'error',
}

ANY_OUTPUT = ['String', 'Number', 'Boolean', 'Object', 'Array']


def set_variable(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> None:
    """Bind `NAME` to `VALUE`."""
    context.set_variable(to_text(params['NAME']), params.get('VALUE'))


def get_variable(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> Any:  # noqa: ANN401
    """Read the variable named by `NAME`, `None` if unbound."""
    return context.get_variable(to_text(params['NAME']))


def if_(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> Branch:
    """Select the `DO` or `ELSE` slot."""
    return Branch(slot='DO' if to_bool(params.get('CONDITION')) else 'ELSE')


def repeat(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> CountedLoop:
    """Run the `DO` slot `TIMES` times."""
    return CountedLoop(times=max(int(to_number(params['TIMES'])), 0))


def foreach(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> CollectionLoop:
    """Run the `DO` slot once per item of `ARRAY`, bound to `VAR`."""
    items = params.get('ARRAY')
    if items is None:
        items = []

    if isinstance(items, MAPPINGS) or not isinstance(items, SEQUENCES):
        raise LeafExecutionError(f'Expected an array to iterate over, got {type(items).__name__}')

    return CollectionLoop(items=list(items), binding=to_text(params['VAR']))


def try_catch(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> TryCatch:
    """Run `TRY`, then `CATCH` if it fails."""
    error_binding = params.get('ERROR_VAR')

    return TryCatch(error_binding=to_text(error_binding) if error_binding else None)


def log(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> str:
    """Write `MESSAGE` to the run log at `LEVEL`."""
    level = LOG_LEVELS.get(to_text(params.get('LEVEL') or 'info').lower(), 'info')
    message = to_text(params.get('MESSAGE'))

    getattr(context.logger, level)(message)

    return message


def comment(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> None:
    """Do nothing."""


def fail(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> None:
    """Fail the step unconditionally."""
    raise LeafExecutionError(to_text(params.get('MESSAGE')) or 'Test failed')


def assert_(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> tuple[bool, str, bool, Any]:
    """Check that `CONDITION` holds."""
    condition = to_bool(params.get('CONDITION'))

    return condition, to_text(params.get('MESSAGE')), True, condition


blocks = [
    create_action_block(
        'logic_set_variable',
        set_variable,
        category='Logic',
        color='#795548',
        tooltip='Set a variable value',
        inputs=[
            {'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True},
            {'name': 'VALUE', 'kind': 'value', 'required': True},
        ],
    ),
    create_value_block(
        'logic_get_variable',
        get_variable,
        output=ANY_OUTPUT,
        category='Logic',
        color='#795548',
        tooltip='Get a variable value',
        inputs=[
            {'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True},
        ],
    ),
    create_action_block(
        'logic_if',
        if_,
        category='Logic',
        color='#5C6BC0',
        tooltip='Execute blocks if condition is true',
        inputs=[
            {'name': 'CONDITION', 'kind': 'value', 'check': 'Boolean', 'required': True},
            {'name': 'DO', 'kind': 'statement'},
            {'name': 'ELSE', 'kind': 'statement'},
        ],
    ),
    create_action_block(
        'logic_repeat',
        repeat,
        category='Logic',
        color='#5C6BC0',
        tooltip='Repeat blocks a specified number of times',
        inputs=[
            {'name': 'TIMES', 'kind': 'field', 'field_type': 'number', 'default': 10, 'required': True},
            {'name': 'DO', 'kind': 'statement'},
        ],
    ),
    create_action_block(
        'logic_foreach',
        foreach,
        category='Logic',
        color='#5C6BC0',
        tooltip='Iterate over an array',
        inputs=[
            {'name': 'ARRAY', 'kind': 'value', 'check': 'Array', 'required': True},
            {'name': 'VAR', 'kind': 'field', 'field_type': 'text', 'default': 'item', 'required': True},
            {'name': 'DO', 'kind': 'statement'},
        ],
    ),
    create_action_block(
        'logic_try_catch',
        try_catch,
        category='Logic',
        color='#5C6BC0',
        tooltip='Handle errors gracefully',
        inputs=[
            {'name': 'ERROR_VAR', 'kind': 'field', 'field_type': 'text'},
            {'name': 'TRY', 'kind': 'statement'},
            {'name': 'CATCH', 'kind': 'statement'},
        ],
    ),
    create_action_block(
        'logic_log',
        log,
        category='Logic',
        color='#607D8B',
        tooltip='Log a message',
        inputs=[
            {
                'name': 'LEVEL',
                'kind': 'field',
                'field_type': 'dropdown',
                'options': [('Info', 'info'), ('Warning', 'warn'), ('Error', 'error'), ('Debug', 'debug')],
                'default': 'info',
            },
            {'name': 'MESSAGE', 'kind': 'field', 'field_type': 'text', 'required': True},
        ],
    ),
    create_action_block(
        'logic_comment',
        comment,
        category='Logic',
        color='#9E9E9E',
        tooltip='Add a comment (does nothing)',
        inputs=[
            {'name': 'TEXT', 'kind': 'field', 'field_type': 'text', 'default': 'Comment'},
        ],
    ),
    create_action_block(
        'logic_fail',
        fail,
        category='Logic',
        color='#f44336',
        tooltip='Fail the test with a message',
        next_statement=False,
        inputs=[
            {'name': 'MESSAGE', 'kind': 'field', 'field_type': 'text', 'default': 'Test failed'},
        ],
    ),
    create_assertion_block(
        'logic_assert',
        assert_,
        category='Logic',
        color='#FF9800',
        tooltip='Assert a condition is true',
        inputs=[
            {'name': 'CONDITION', 'kind': 'value', 'check': 'Boolean', 'required': True},
            {'name': 'MESSAGE', 'kind': 'field', 'field_type': 'text', 'default': 'Assertion failed'},
        ],
    ),
]
