"""Test file documents.

A test file bundles file-level variables, reusable procedures, lifecycle
hooks (`before_all`, `after_all`, `before_each`, `after_each`) and the test
cases themselves. A test case may be data-driven: it then runs once per
data row, and each row's values are visible to variable resolution.

Field names accept both the snake_case spelling and the camelCase spelling
used by serialized block graphs (for example, `before_each` and
`beforeEach`).
"""

from typing import Annotated, Any

from pydantic import AliasChoices, Field

from pytest_blocks.models import DescribedMixin, SchemaModel
from pytest_blocks.names import Variable  # noqa: TC001

from .procedures import ProcedureDefinition  # noqa: TC001
from .steps import StepNode  # noqa: TC001


def _alias(name: str, alias: str) -> AliasChoices:
    """Accept both spellings of a field name."""
    return AliasChoices(name, alias)


class VariableDefinition(SchemaModel):
    """Typed variable declaration with a default value."""

    type: str = Field(
        title='Variable type',
    )

    default: Any = Field(
        default=None,
        title='Default value',
    )

    description: str | None = Field(
        default=None,
        title='Description',
    )


class DataRow(SchemaModel):
    """One row of a data-driven test case."""

    name: str | None = Field(
        default=None,
        title='Row name',
        description='Optional label used in reports and item names.',
    )

    values: dict[str, Any] = Field(
        default_factory=dict,
        title='Row values',
    )


class TestCase(DescribedMixin, SchemaModel):
    """Executable test case."""

    __test__ = False

    id: str | None = Field(
        default=None,
        title='Test identifier',
    )

    name: str = Field(
        title='Test name',
    )

    tags: list[str] = Field(
        default_factory=list,
        title='Tags',
    )

    soft_assertions: bool | None = Field(
        default=None,
        title='Soft assertions',
        description=(
            'Collect assertion failures and report them at the end of the '
            'test case. Falls back to the engine settings when unset.'
        ),
        validation_alias=_alias('soft_assertions', 'softAssertions'),
    )

    data: list[DataRow] = Field(
        default_factory=list,
        title='Data rows',
        description='Rows of values; the test case runs once per row.',
    )

    before_each: list[StepNode] = Field(
        default_factory=list,
        title='Before each',
        validation_alias=_alias('before_each', 'beforeEach'),
    )

    after_each: list[StepNode] = Field(
        default_factory=list,
        title='After each',
        validation_alias=_alias('after_each', 'afterEach'),
    )

    steps: list[StepNode] = Field(
        default_factory=list,
        title='Steps',
    )

    @property
    def key(self) -> str:
        """Identifier of the test case, falling back to its name."""
        return self.id or self.name


class TestFile(DescribedMixin, SchemaModel):
    """A file of test cases sharing variables, procedures and hooks."""

    __test__ = False

    version: str = Field(
        default='1.0',
        title='Format version',
    )

    name: str = Field(
        default='Untitled',
        title='Test file name',
    )

    variables: dict[Variable, Annotated[VariableDefinition | Any, Field(union_mode='left_to_right')]] = Field(
        default_factory=dict,
        title='Variables',
        description=(
            'File-level variables, given either as plain values or as '
            '`{type, default}` definitions.'
        ),
    )

    procedures: list[ProcedureDefinition] = Field(
        default_factory=list,
        title='Procedures',
        description='Reusable procedures, also exposed as `custom_<name>` blocks.',
    )

    before_all: list[StepNode] = Field(
        default_factory=list,
        title='Before all',
        validation_alias=_alias('before_all', 'beforeAll'),
    )

    after_all: list[StepNode] = Field(
        default_factory=list,
        title='After all',
        validation_alias=_alias('after_all', 'afterAll'),
    )

    before_each: list[StepNode] = Field(
        default_factory=list,
        title='Before each',
        validation_alias=_alias('before_each', 'beforeEach'),
    )

    after_each: list[StepNode] = Field(
        default_factory=list,
        title='After each',
        validation_alias=_alias('after_each', 'afterEach'),
    )

    tests: list[TestCase] = Field(
        default_factory=list,
        title='Test cases',
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        title='Metadata',
    )

    def resolve_variables(self) -> dict[str, Any]:
        """Return the initial variable bindings of the file.

        Returns:
            Mapping of variable names to plain values, with typed
            definitions replaced by their defaults.
        """
        return {
            name: value.default if isinstance(value, VariableDefinition) else value
            for name, value in self.variables.items()
        }
