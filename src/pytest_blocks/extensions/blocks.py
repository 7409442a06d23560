"""Helpers for declaring blocks.

Plugins and builtin modules declare blocks with these factories instead of
building `BlockDescriptor` instances by hand. They fill in the statement
chaining flags and the output declaration that distinguish action blocks
from value blocks, and route assertion blocks through the assertion policy
of the running context.
"""

from collections.abc import Callable, Iterable, Mapping
from inspect import isawaitable
from typing import TYPE_CHECKING, Any

from pytest_blocks.assertions import handle_assertion
from pytest_blocks.schema import BlockDescriptor, BlockInput, BlockOutput

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.schema import BlockExecutor

#: Assertion check returning `(passed, message)` or
#: `(passed, message, expected, actual)`.
type AssertionCheck = Callable[[Mapping[str, Any], 'ExecutionContext'], Any]

type Inputs = Iterable[BlockInput | Mapping[str, Any]]


def _inputs(inputs: Inputs | None) -> list[BlockInput]:
    """Validate input declarations given as models or mappings."""
    return [
        item if isinstance(item, BlockInput) else BlockInput.model_validate(item)
        for item in inputs or ()
    ]


def create_block(block_type: str, executor: 'BlockExecutor', *,  # noqa: PLR0913
                 category: str = 'custom',
                 inputs: Inputs | None = None,
                 output: str | list[str] | None = None,
                 tooltip: str | None = None,
                 color: str | None = None,
                 previous_statement: bool | None = None,
                 next_statement: bool | None = None,
                 snapshot_on_failure: bool = False) -> BlockDescriptor:
    """Declare a block.

    Blocks with an output are value blocks and do not chain as statements
    unless requested explicitly; blocks without an output chain both ways.

    Args:
        block_type: Block type identifier.
        executor: Callable implementing the block.
        category: Block category.
        inputs: Declared inputs.
        output: Output type(s) of a value block.
        tooltip: Help text.
        color: Editor color.
        previous_statement: Override the previous statement flag.
        next_statement: Override the next statement flag.
        snapshot_on_failure: Offer a failure artifact when the step fails.

    Returns:
        Block descriptor.
    """
    is_value = output is not None

    return BlockDescriptor(
        type=block_type,
        category=category,
        color=color,
        tooltip=tooltip,
        inputs=_inputs(inputs),
        output=BlockOutput(type=output) if is_value else None,
        previous_statement=(not is_value) if previous_statement is None else previous_statement,
        next_statement=(not is_value) if next_statement is None else next_statement,
        snapshot_on_failure=snapshot_on_failure,
        executor=executor,
    )


def create_action_block(block_type: str, executor: 'BlockExecutor',
                        **kwargs: Any) -> BlockDescriptor:  # noqa: ANN401
    """Declare a statement block performing an action."""
    kwargs.pop('output', None)

    return create_block(block_type, executor, **kwargs)


def create_value_block(block_type: str, executor: 'BlockExecutor', *,
                       output: str | list[str] = 'Any',
                       **kwargs: Any) -> BlockDescriptor:  # noqa: ANN401
    """Declare a block producing a value for other blocks."""
    return create_block(block_type, executor, output=output, **kwargs)


def create_assertion_block(block_type: str, check: AssertionCheck,
                           **kwargs: Any) -> BlockDescriptor:  # noqa: ANN401
    """Declare an assertion block.

    The check returns a tuple `(passed, message)`, optionally followed by
    the expected and the actual values. The outcome is handed to the
    assertion policy of the context: hard assertions fail the step, soft
    ones are collected.

    Args:
        block_type: Block type identifier.
        check: Callable evaluating the assertion.
        **kwargs: Arguments of `create_block`.

    Returns:
        Block descriptor.
    """
    async def execute(params: Mapping[str, Any], context: 'ExecutionContext') -> bool:
        outcome = check(params, context)
        if isawaitable(outcome):
            outcome = await outcome

        passed, message, *details = outcome
        expected, actual = (*details, None, None)[:2]

        handle_assertion(
            context,
            bool(passed),
            message,
            expected=expected,
            actual=actual,
        )

        return bool(passed)

    kwargs.setdefault('category', 'assertions')

    return create_action_block(block_type, execute, **kwargs)
