"""Execution result records.

Step and test results are produced by the interpreter and the runner and
consumed by reporters. They are plain records: mutable while a run
assembles them and serializable with `model_dump(mode='json')` afterwards.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import Field

from pytest_blocks.models import RecordModel

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import Self


def utcnow() -> datetime:
    """Return the current time with UTC timezone."""
    return datetime.now(UTC)


class Status(StrEnum):
    """Outcome of a step or a test case."""

    PASSED = 'passed'
    FAILED = 'failed'
    SKIPPED = 'skipped'
    ERROR = 'error'


class ErrorInfo(RecordModel):
    """Failure description attached to a result."""

    message: str
    trace: str | None = None
    code: str | None = None

    @classmethod
    def from_exception(cls, error: BaseException) -> 'Self':
        """Describe an exception.

        Args:
            error: Exception raised by a step or a lifecycle hook.

        Returns:
            Error record with the message, trace and error code.
        """
        from pytest_blocks.errors import BlockError, BlockRuntimeError  # noqa: PLC0415

        message = error.message if isinstance(error, BlockError) else str(error)
        trace = error.trace if isinstance(error, BlockRuntimeError) else None
        code = getattr(error, 'code', None)

        return cls(
            message=message or type(error).__name__,
            trace=trace,
            code=code if isinstance(code, str) else type(error).__name__,
        )


class SoftAssertionError(RecordModel):
    """A collected, not yet reported, assertion failure."""

    message: str
    step_id: str | None = None
    step_type: str | None = None
    expected: Any = None
    actual: Any = None
    timestamp: datetime = Field(default_factory=utcnow)


class StepResult(RecordModel):
    """Outcome of one evaluated step."""

    step_id: str
    step_type: str
    status: Status = Status.PASSED
    duration: float = Field(
        default=0.0,
        description='Elapsed wall time in milliseconds.',
    )
    output: Any = None
    error: ErrorInfo | None = None
    artifact: Any = Field(
        default=None,
        description='Failure artifact attached by a collaborator hook.',
    )

    inputs: dict[str, 'StepResult'] = Field(
        default_factory=dict,
        description='Results of nested value steps, by input name.',
    )
    children: list['StepResult'] = Field(
        default_factory=list,
        description='Results of statement steps run on behalf of this step.',
    )

    soft: bool = Field(
        default=False,
        description='The failure was a collected soft assertion.',
    )
    returned: bool = Field(
        default=False,
        description='A procedure return is propagating through this step.',
    )

    exception: BaseException | None = Field(
        default=None,
        exclude=True,
        repr=False,
    )

    @property
    def passed(self) -> bool:
        """Whether the step passed."""
        return self.status == Status.PASSED

    @property
    def fatal(self) -> bool:
        """Whether the step failure stops the enclosing statement list."""
        return self.status in {Status.FAILED, Status.ERROR} and not self.soft

    def walk(self) -> 'Iterator[StepResult]':
        """Iterate over this result and all nested results, depth-first."""
        yield self

        for result in self.inputs.values():
            yield from result.walk()

        for result in self.children:
            yield from result.walk()


class TestResult(RecordModel):
    """Outcome of one test case execution (one data row, if data-driven)."""

    __test__ = False

    test_id: str
    test_name: str
    status: Status = Status.PASSED
    duration: float = Field(
        default=0.0,
        description='Elapsed wall time in milliseconds.',
    )
    steps: list[StepResult] = Field(default_factory=list)
    error: ErrorInfo | None = None
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: datetime | None = None
    data_iteration: int | None = None
    lifecycle: str | None = Field(
        default=None,
        description='Lifecycle hook name for `before_all` / `after_all` results.',
    )
    soft_errors: list[SoftAssertionError] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        """Whether the test passed."""
        return self.status == Status.PASSED

    def finish(self, status: Status | None = None,
               error: BaseException | None = None) -> 'Self':
        """Close the result, setting the final status and timings.

        Args:
            status: Final status, kept unchanged when `None`.
            error: Exception that ended the test, if any.

        Returns:
            The same result.
        """
        if status is not None:
            self.status = status

        if error is not None:
            self.error = ErrorInfo.from_exception(error)

        self.finished_at = utcnow()
        self.duration = (self.finished_at - self.started_at).total_seconds() * 1000

        return self


StepResult.model_rebuild()
