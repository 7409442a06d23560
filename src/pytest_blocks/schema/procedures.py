"""Procedure definitions.

A procedure is a named, parameterized, reusable body of steps. Procedures
are registered in a procedure registry either by a `procedure_define` step
at run time or declared up front in a test file.
"""

from typing import Any

from pydantic import AliasChoices, Field

from pytest_blocks.models import SchemaModel
from pytest_blocks.names import ProcedureName, Variable  # noqa: TC001

from .steps import StepNode  # noqa: TC001

#: Type name of parameters declared without an explicit type.
ANY_TYPE = 'any'


class ProcedureParam(SchemaModel):
    """Declared parameter of a procedure."""

    name: Variable

    type: str = Field(
        default=ANY_TYPE,
        title='Declared type',
        description='Informational type name (for example, `string` or `number`).',
    )

    default: Any = Field(
        default=None,
        title='Default value',
        description='Value bound when a call does not supply the parameter.',
    )

    description: str | None = Field(
        default=None,
        title='Description',
    )


class ProcedureDefinition(SchemaModel):
    """Named, parameterized body of steps."""

    name: ProcedureName

    description: str | None = Field(
        default=None,
        title='Description',
    )

    params: list[ProcedureParam] = Field(
        default_factory=list,
        title='Parameters',
        description='Declared parameters, in positional order.',
    )

    return_type: str | None = Field(
        default=None,
        title='Return type',
        validation_alias=AliasChoices('return_type', 'returnType'),
    )

    steps: list[StepNode] = Field(
        default_factory=list,
        title='Body',
        description='Steps executed when the procedure is called.',
    )

    @property
    def param_names(self) -> tuple[str, ...]:
        """Parameter names in positional order."""
        return tuple(param.name for param in self.params)

    @staticmethod
    def parse_params(text: str | None) -> list[ProcedureParam]:
        """Parse a parameter list written as `name[:type]` items.

        Items are separated by commas; blank items are ignored.

        Args:
            text: Parameter list text, for example `a:number, b`.

        Returns:
            Declared parameters in order.
        """
        params = []
        for item in (text or '').split(','):
            name, _, type_ = item.partition(':')
            if not name.strip():
                continue
            params.append(ProcedureParam(
                name=name.strip(),
                type=type_.strip() or ANY_TYPE,
            ))

        return params
