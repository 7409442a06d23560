"""Pytest item executing a single block test case.

Items run one test case execution through the file session of their
collector. A failed or errored `TestResult` is turned into an
`AssertionError` carrying the formatted failure; a skipped one into a pytest
skip.
"""

from typing import TYPE_CHECKING

import pytest

from pytest_blocks.errors import ErrorContext, ErrorFormatter
from pytest_blocks.schema import Status

if TYPE_CHECKING:
    from typing import Any

if TYPE_CHECKING:
    from _pytest._code.code import ExceptionInfo, TerminalRepr

if TYPE_CHECKING:
    from pytest_blocks.schema import StepResult, TestResult
    from pytest_blocks.schema import TestCase as BlockTestCase


def _failed_step(result: 'TestResult') -> 'StepResult | None':
    """Return the innermost failed step of the first failing step chain."""
    for step in result.steps:
        if not step.fatal:
            continue

        failed = step
        for item in step.walk():
            if item.fatal:
                failed = item
        return failed

    return None


def format_failure(result: 'TestResult', *, filename: str | None = None) -> str:
    """Format a failed test result for pytest reporting.

    Args:
        result: Failed test result.
        filename: Source file of the test case.

    Returns:
        Message with the failure location and the collected soft assertion
        failures, if any.
    """
    error_context = ErrorContext(
        filename=filename,
        test_name=result.test_name,
        data_iteration=result.data_iteration,
    )

    if (step := _failed_step(result)) is not None:
        error_context.update(step_id=step.step_id, step_type=step.step_type)

    message = result.error.message if result.error else f'Test {result.status}'
    if result.error and result.error.trace:
        message += f'\n{result.error.trace}'

    return ErrorFormatter.format(message, error_context)


class TestCase(pytest.Item):
    """Pytest item executing one test case execution."""

    __test__ = False

    def __init__(self, *,
                 test: 'BlockTestCase',
                 data_index: int | None = None,
                 **kwargs: 'Any') -> None:
        """Initialize a pytest item backed by a block test case.

        Args:
            test: Test case.
            data_index: Data row position for a data-driven test case.
            **kwargs: Keyword pytest.Item arguments.
        """
        super().__init__(**kwargs)

        self.test = test
        self.data_index = data_index

        for tag in test.tags:
            self.add_marker(tag)

    def runtest(self) -> None:
        """Execute the test case.

        Raises:
            AssertionError: If the test case fails.
        """
        spec = self.parent
        setup_error = spec.session_.setup_error  # type: ignore[union-attr]
        if setup_error is not None:
            raise AssertionError(format_failure(setup_error, filename=f'{self.path}'))

        result = spec.loop.run(  # type: ignore[union-attr]
            spec.session_.run_test(self.test, self.data_index),  # type: ignore[union-attr]
        )
        self.user_properties.append(('blocks_result', result.model_dump(exclude={'steps'})))

        if result.status == Status.SKIPPED:
            pytest.skip(result.error.message if result.error else 'Skipped')

        if result.status != Status.PASSED:
            raise AssertionError(format_failure(result, filename=f'{self.path}'))

    def repr_failure(self, excinfo: 'ExceptionInfo[BaseException]',
                     style: 'Any' = None) -> 'str | TerminalRepr':
        """Report assertion failures without the engine traceback."""
        if isinstance(excinfo.value, AssertionError):
            return str(excinfo.value)

        return super().repr_failure(excinfo, style=style)

    def reportinfo(self) -> tuple['Any', int | None, str]:
        """Locate the item in reports."""
        return self.path, None, f'{self.name}'
