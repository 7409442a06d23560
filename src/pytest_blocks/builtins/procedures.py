"""Built-in procedure blocks.

`procedure_define` registers its `DO` slot as a named procedure of the
running context. `procedure_call` and `procedure_call_with_return` bind the
call arguments and run the procedure body as a call frame; a
`procedure_return` inside the body stops it and, for the returning call,
provides the call output.
"""

from typing import TYPE_CHECKING, Any

from pytest_blocks.core.procedures import resolve_call_arguments
from pytest_blocks.extensions import create_action_block, create_value_block
from pytest_blocks.schema import ProcedureCall, ProcedureDefine, ProcedureDefinition, ProcedureReturn
from pytest_blocks.values import to_text

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext

ANY_OUTPUT = ['String', 'Number', 'Boolean', 'Object', 'Array']


def define(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> ProcedureDefine:
    """Declare a procedure named `NAME` with the `PARAMS` list."""
    return ProcedureDefine(
        name=to_text(params['NAME']),
        description=to_text(params.get('DESCRIPTION') or '') or None,
        params=ProcedureDefinition.parse_params(to_text(params.get('PARAMS') or '')),
    )


def _call(params: 'Mapping[str, Any]', context: 'ExecutionContext', *,
          expect_return: bool) -> ProcedureCall:
    """Look up the procedure and bind the call arguments.

    Raises:
        ProcedureNotFound: If the procedure is not defined.
        ResolveError: If too many positional arguments are given.
    """
    name = to_text(params['NAME'])
    procedure = context.procedures.require(name)

    return ProcedureCall(
        name=name,
        args=resolve_call_arguments(params.get('ARGS'), procedure),
        procedure=procedure,
        expect_return=expect_return,
    )


def call(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> ProcedureCall:
    return _call(params, context, expect_return=False)


def call_with_return(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> ProcedureCall:
    return _call(params, context, expect_return=True)


def return_(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> ProcedureReturn:
    return ProcedureReturn(value=params.get('VALUE'))


def get_param(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> Any:  # noqa: ANN401
    """Read a procedure parameter; parameters are plain variables."""
    return context.get_variable(to_text(params['NAME']))


blocks = [
    create_action_block(
        'procedure_define',
        define,
        category='Procedures',
        color='#9C27B0',
        tooltip='Define a reusable procedure with parameters',
        inputs=[
            {'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True},
            {'name': 'DESCRIPTION', 'kind': 'field', 'field_type': 'text', 'default': ''},
            {'name': 'PARAMS', 'kind': 'field', 'field_type': 'text', 'default': ''},
            {'name': 'DO', 'kind': 'statement'},
        ],
    ),
    create_action_block(
        'procedure_call',
        call,
        category='Procedures',
        color='#9C27B0',
        tooltip='Call a defined procedure',
        inputs=[
            {'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True},
            {'name': 'ARGS', 'kind': 'field', 'field_type': 'text', 'default': ''},
        ],
    ),
    create_value_block(
        'procedure_call_with_return',
        call_with_return,
        output=ANY_OUTPUT,
        category='Procedures',
        color='#9C27B0',
        tooltip='Call a procedure and get return value',
        inputs=[
            {'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True},
            {'name': 'ARGS', 'kind': 'field', 'field_type': 'text', 'default': ''},
        ],
    ),
    create_action_block(
        'procedure_return',
        return_,
        category='Procedures',
        color='#9C27B0',
        tooltip='Return a value from a procedure',
        next_statement=False,
        inputs=[{'name': 'VALUE', 'kind': 'value'}],
    ),
    create_value_block(
        'procedure_get_param',
        get_param,
        output=ANY_OUTPUT,
        category='Procedures',
        color='#9C27B0',
        tooltip='Get a procedure parameter value',
        inputs=[{'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True}],
    ),
]
