"""Step node definitions.

A step node is one instantiation of a block inside a test. Its inputs are
bound either to literal values, to nested value-producing steps, or to
named statement slots (ordered lists of child steps such as `DO`, `ELSE`,
`TRY` or `CATCH`).

Step nodes are immutable, so a step tree loaded from a test file is a tree
by construction and may be evaluated any number of times by independent
execution contexts.
"""

from typing import TYPE_CHECKING, Annotated, Any
from uuid import uuid4

from pydantic import Field

from pytest_blocks.models import SchemaModel
from pytest_blocks.names import BlockType  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Iterator


def make_step_id() -> str:
    """Generate a unique step identifier."""
    return f'step-{uuid4().hex[:12]}'


class StepNode(SchemaModel):
    """A block instance inside a step tree."""

    id: str = Field(
        default_factory=make_step_id,
        min_length=1,
        title='Step identifier',
        description='Identifier of the step, used in results and error reports.',
    )

    type: BlockType

    params: dict[str, Annotated['StepNode | Any', Field(union_mode='left_to_right')]] = Field(
        default_factory=dict,
        title='Step parameters',
        description=(
            'Inputs of the step bound to literal values or to nested '
            'value-producing steps. A mapping that validates as a step '
            'is treated as a nested step; any other value is a literal.'
        ),
    )

    slots: dict[str, list['StepNode']] = Field(
        default_factory=dict,
        title='Statement slots',
        description=(
            'Named lists of child steps consumed by control-flow blocks '
            '(for example, `DO`, `ELSE`, `TRY` and `CATCH`).'
        ),
    )

    def slot(self, name: str) -> tuple['StepNode', ...]:
        """Return the child steps of a statement slot.

        Args:
            name: Slot name.

        Returns:
            The slot's steps in declared order, empty if the slot is absent.
        """
        return tuple(self.slots.get(name, ()))

    def walk(self) -> 'Iterator[StepNode]':
        """Iterate over this step and every step nested inside it, depth-first."""
        yield self

        for value in self.params.values():
            if isinstance(value, StepNode):
                yield from value.walk()

        for steps in self.slots.values():
            for step in steps:
                yield from step.walk()

    def summary(self) -> dict[str, Any]:
        """Return a compact representation used in error snippets."""
        return {
            'id': self.id,
            'type': self.type,
            'params': {
                key: value.summary() if isinstance(value, StepNode) else value
                for key, value in self.params.items()
            },
            'slots': {
                key: len(value)
                for key, value in self.slots.items()
            },
        }


StepNode.model_rebuild()
