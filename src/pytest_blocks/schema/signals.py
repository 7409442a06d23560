"""Control signals returned by block executors.

A block executor may return a plain value (a terminal result) or one of the
signals below, which instruct the step interpreter to perform additional
control-flow work using the invoking step's statement slots or a synthetic
list of steps. Each signal is a distinct type, so the interpreter dispatches
on the type rather than on the presence of particular fields.
"""

from typing import Any

from pydantic import Field

from pytest_blocks.models import SchemaModel

from .procedures import ProcedureDefinition, ProcedureParam  # noqa: TC001
from .steps import StepNode  # noqa: TC001


class Signal(SchemaModel):
    """Base class of all control signals."""


class Branch(Signal):
    """Evaluate one statement slot of the invoking step."""

    slot: str = Field(
        title='Selected slot',
        description='Name of the slot to run, usually `DO` or `ELSE`.',
    )


class CountedLoop(Signal):
    """Evaluate a statement slot a fixed number of times."""

    times: int = Field(ge=0)
    slot: str = 'DO'


class CollectionLoop(Signal):
    """Evaluate a statement slot once per collection element.

    Before each iteration the element is bound to `binding` (and its
    position to `index_binding`, if set) in the context variables.
    """

    items: list[Any]
    binding: str = Field(min_length=1)
    slot: str = 'DO'
    index_binding: str | None = None


class TryCatch(Signal):
    """Evaluate the try slot and fall back to the catch slot on failure.

    When `error_binding` is set the message of the caught failure is bound
    to that variable before the catch slot runs.
    """

    try_slot: str = 'TRY'
    catch_slot: str = 'CATCH'
    error_binding: str | None = None


class InlineExpand(Signal):
    """Evaluate a synthetic list of steps as the invoking step's body.

    With `frame` set the expansion behaves like a procedure call frame:
    a procedure return inside it stops the expansion and supplies the
    invoking step's output, and `bindings` are visible to the expansion
    only.
    """

    steps: list[StepNode]
    name: str | None = None
    frame: bool = False
    bindings: dict[str, Any] = Field(
        default_factory=dict,
        title='Variable bindings',
        description='Variables bound before the steps run.',
    )


class ProcedureCall(Signal):
    """Bind arguments and evaluate a procedure body."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    procedure: ProcedureDefinition
    expect_return: bool = False


class ProcedureReturn(Signal):
    """Stop the enclosing procedure body and supply its result."""

    value: Any = None


class ProcedureDefine(Signal):
    """Register a procedure whose body is a statement slot of the invoking step."""

    name: str = Field(min_length=1)
    params: list[ProcedureParam] = Field(default_factory=list)
    description: str | None = None
    return_type: str | None = None
    slot: str = 'DO'

    def build(self, step: StepNode) -> ProcedureDefinition:
        """Build the procedure definition from the defining step.

        Args:
            step: Step that returned this signal.

        Returns:
            Procedure definition with the slot steps as body.
        """
        return ProcedureDefinition(
            name=self.name,
            description=self.description,
            params=self.params,
            return_type=self.return_type,
            steps=list(step.slot(self.slot)),
        )

