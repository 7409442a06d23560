"""Block descriptors.

A block descriptor is the capability record of one block type: its
category, its declared inputs and output, whether it chains as a statement,
and the executor implementing its behavior. Descriptors are declarative and
immutable; execution orchestration lives in the step interpreter.

The executor contract is `executor(params, context) -> output`, where
`params` is the mapping of resolved inputs and `output` is either a plain
value or a control signal (see `pytest_blocks.schema.signals`). Executors
may be coroutine functions or return awaitables; both are awaited.
"""

from collections.abc import Callable, Mapping
from inspect import isawaitable
from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field

from pytest_blocks.models import SchemaModel
from pytest_blocks.names import BlockType  # noqa: TC001

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext

#: Leaf executor receiving resolved inputs and the execution context.
type BlockExecutor = Callable[[Mapping[str, Any], Any], Any]

#: Kinds of block inputs.
#: `field` is a literal field edited in place, `value` accepts a literal
#: or a nested value step, `statement` is a slot of child steps.
type InputKind = Literal['field', 'value', 'statement']


class BlockInput(SchemaModel):
    """Declared input of a block."""

    name: str = Field(
        min_length=1,
        title='Input name',
    )

    kind: InputKind = Field(
        default='value',
        title='Input kind',
    )

    field_type: str | None = Field(
        default=None,
        title='Field type',
        description='Editor field type (for example, `text`, `number`, `dropdown`).',
    )

    check: str | list[str] | None = Field(
        default=None,
        title='Type constraint',
        description='Accepted value type(s) of a nested value step.',
    )

    options: list[tuple[str, str]] | None = Field(
        default=None,
        title='Dropdown options',
        description='Label and value pairs of a dropdown field.',
    )

    default: Any = Field(
        default=None,
        title='Default value',
    )

    required: bool = Field(
        default=False,
        title='Required input',
        description='Fail the step when the input is absent and has no default.',
    )


class BlockOutput(SchemaModel):
    """Declared output of a value block."""

    type: str | list[str] | None = Field(
        default=None,
        title='Output type',
    )


class BlockDescriptor(SchemaModel):
    """Capability descriptor of a block type."""

    type: BlockType

    category: str = Field(
        default='custom',
        title='Category',
    )

    color: str | None = Field(
        default=None,
        title='Editor color',
    )

    tooltip: str | None = Field(
        default=None,
        title='Tooltip',
    )

    inputs: list[BlockInput] = Field(
        default_factory=list,
        title='Declared inputs',
    )

    output: BlockOutput | None = Field(
        default=None,
        title='Declared output',
        description='Output of a value block, `None` for statement blocks.',
    )

    previous_statement: bool = Field(
        default=True,
        title='Chains to a previous statement',
    )

    next_statement: bool = Field(
        default=True,
        title='Chains to a next statement',
    )

    snapshot_on_failure: bool = Field(
        default=False,
        title='Capture a failure artifact',
        description=(
            'Offer the artifact hook a chance to attach a failure artifact '
            '(for example, a page screenshot) when the step fails.'
        ),
    )

    executor: BlockExecutor = Field(
        title='Block executor',
        description='Callable implementing the block behavior.',
        exclude=True,
    )

    @property
    def is_statement(self) -> bool:
        """Whether the block chains as a statement."""
        return self.previous_statement or self.next_statement

    @property
    def is_value(self) -> bool:
        """Whether the block produces a value for other blocks."""
        return self.output is not None

    @property
    def statement_inputs(self) -> tuple[str, ...]:
        """Names of statement slot inputs."""
        return tuple(item.name for item in self.inputs if item.kind == 'statement')

    @property
    def parameter_inputs(self) -> tuple[BlockInput, ...]:
        """Declared inputs resolved before invocation, in declaration order."""
        return tuple(item for item in self.inputs if item.kind != 'statement')

    async def execute(self, params: Mapping[str, Any],
                      context: 'ExecutionContext') -> Any:  # noqa: ANN401
        """Invoke the executor, awaiting the result when it is awaitable.

        Args:
            params: Resolved input values.
            context: Execution context of the running test.

        Returns:
            The executor output, a plain value or a control signal.
        """
        result = self.executor(params, context)
        if isawaitable(result):
            result = await result

        return result
