"""Test file execution.

A `FileSession` runs the contents of one test file against a scoped
execution environment: file procedures become procedures and `custom_<name>`
blocks, `before_all` runs once in a shared context, and each test case (each
data row of a data-driven one) runs in a context forked from it, wrapped by
the file and test `before_each` / `after_each` steps.

`TestRunner` drives whole files. The pytest plugin drives a session phase by
phase instead, so each test case maps to its own pytest item.

Test case failures never escape `run_test`: they are reported through the
returned `TestResult`.
"""

import logging
from typing import TYPE_CHECKING, Any

from pytest_blocks.assertions import flush_soft_assertions
from pytest_blocks.errors import SoftAssertionAggregate
from pytest_blocks.schema import ErrorInfo, Status, TestResult

from .interpreter import invoke_hooks
from .procedures import procedure_block

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.schema import StepNode, StepResult, TestCase, TestFile

    from .environment import ExecutionEnvironment

logger = logging.getLogger(__name__)


def _first_failure(results: 'Iterable[StepResult]') -> 'StepResult | None':
    """Return the first fatal or skipped result."""
    return next(
        (item for item in results if item.fatal or item.status == Status.SKIPPED),
        None,
    )


class FileSession:
    """Execution state of one test file.

    Attributes:
        test_file: Test file being run.
        environment: Scoped environment holding the file procedures.
        context: Shared context of `before_all` / `after_all`; every test
            case context is forked from it.
    """

    def __init__(self, environment: 'ExecutionEnvironment', test_file: 'TestFile', *,
                 resources: 'Mapping[str, Any] | None' = None) -> None:
        """Prepare a file for execution.

        Args:
            environment: Environment the file runs in. It is not modified.
            test_file: Test file.
            resources: Collaborator handles made available to blocks.
        """
        self.test_file = test_file
        self.environment = environment.scoped()

        for procedure in test_file.procedures:
            self.environment.define_procedure(procedure.name, procedure)
            self.environment.register_block(procedure_block(procedure))

        self.interpreter = self.environment.interpreter()
        self.context = self.environment.new_context(
            variables=test_file.resolve_variables(),
            resources=resources,
            test_name=test_file.name,
        )
        self.setup_error: TestResult | None = None

    @property
    def hooks(self) -> list[Any]:
        """Hooks of the loaded plugins."""
        return self.environment.hooks

    def cases(self) -> 'Iterable[tuple[TestCase, int | None]]':
        """Iterate over test case executions: one per data row, or one."""
        for test in self.test_file.tests:
            if not test.data:
                yield test, None
                continue

            for index in range(len(test.data)):
                yield test, index

    async def before_all(self) -> TestResult | None:
        """Run the `before_all` steps and hooks.

        Returns:
            An `error` lifecycle result on failure, otherwise `None`.
        """
        self.setup_error = await self._run_lifecycle('before_all', self.test_file.before_all)

        return self.setup_error

    async def after_all(self) -> TestResult | None:
        """Run the `after_all` steps and hooks.

        Returns:
            An `error` lifecycle result on failure, otherwise `None`.
        """
        return await self._run_lifecycle('after_all', self.test_file.after_all)

    async def run_test(self, test: 'TestCase', data_index: int | None = None) -> TestResult:
        """Run one test case execution.

        Args:
            test: Test case.
            data_index: Data row position for a data-driven test case.

        Returns:
            The test result.
        """
        row = test.data[data_index] if data_index is not None else None
        result = TestResult(
            test_id=test.key,
            test_name=self.item_name(test, data_index),
            data_iteration=data_index,
        )

        if self.setup_error is not None:
            result.error = ErrorInfo(message='before_all failed', code='skipped')
            return result.finish(Status.SKIPPED)

        soft = test.soft_assertions
        if soft is None:
            soft = self.environment.settings.soft_assertions

        context = self.context.fork(
            variables=row.values if row is not None else None,
            current_data=row,
            data_index=data_index,
            soft_assertions=soft,
            test_name=test.name,
        )

        try:
            await invoke_hooks(self.hooks, 'before_test', test=test, context=context)
            await self._run_test(test, context, result)

        except Exception as error:
            context.logger.exception('Test case raised an unexpected error')
            result.finish(Status.ERROR, error)

        finally:
            try:
                await invoke_hooks(self.hooks, 'after_test', test=test, context=context, result=result)
            except Exception:
                context.logger.exception('Hook after_test failed')

        return result

    async def _run_test(self, test: 'TestCase', context: 'ExecutionContext',
                        result: TestResult) -> None:
        """Run the steps of a test case and settle its status."""
        failure = None
        for steps in (self.test_file.before_each, test.before_each, test.steps):
            results = await self.interpreter.run_steps(steps, context)
            result.steps.extend(results)
            if (failure := _first_failure(results)) is not None:
                break

        for steps in (test.after_each, self.test_file.after_each):
            results = await self.interpreter.run_steps(steps, context)
            result.steps.extend(results)
            if failure is None:
                failure = _first_failure(results)

        try:
            flush_soft_assertions(context)
        except SoftAssertionAggregate as aggregate:
            result.soft_errors = list(aggregate.errors)
            if failure is None:
                result.finish(Status.FAILED, aggregate)
                return

        if failure is None:
            result.finish(Status.PASSED)
        elif failure.status == Status.SKIPPED:
            result.finish(Status.SKIPPED)
            result.error = failure.error
        else:
            result.finish(Status.FAILED, failure.exception)
            if result.error is None:
                result.error = failure.error

    async def _run_lifecycle(self, name: str, steps: 'Iterable[StepNode]') -> TestResult | None:
        """Run file-level lifecycle steps in the shared context."""
        result = TestResult(test_id=name, test_name=f'{self.test_file.name} {name}', lifecycle=name)

        try:
            await invoke_hooks(self.hooks, name, test_file=self.test_file, context=self.context)
            result.steps = await self.interpreter.run_steps(steps, self.context)
        except Exception as error:
            self.context.logger.exception('Lifecycle %s raised an unexpected error', name)
            return result.finish(Status.ERROR, error)

        if (failure := _first_failure(result.steps)) is not None:
            self.context.logger.error('Lifecycle %s failed on step %s', name, failure.step_id)
            return result.finish(Status.ERROR, failure.exception)

        return None

    @staticmethod
    def item_name(test: 'TestCase', data_index: int | None = None) -> str:
        """Return the display name of a test case execution."""
        if data_index is None:
            return test.name

        row = test.data[data_index]

        return f'{test.name}[{row.name or data_index}]'


class TestRunner:
    """Runs test files in an execution environment."""

    __test__ = False

    def __init__(self, environment: 'ExecutionEnvironment', *,
                 resources: 'Mapping[str, Any] | None' = None) -> None:
        """Initialize the runner.

        Args:
            environment: Environment test files run in.
            resources: Collaborator handles made available to blocks.
        """
        self.environment = environment
        self.resources = resources

    def session(self, test_file: 'TestFile') -> FileSession:
        """Prepare a test file for phase by phase execution."""
        return FileSession(self.environment, test_file, resources=self.resources)

    async def run_file(self, test_file: 'TestFile') -> list[TestResult]:
        """Run every test case of a file.

        Args:
            test_file: Test file.

        Returns:
            Results in execution order. Failed `before_all` / `after_all`
            phases contribute `error` lifecycle results; when `before_all`
            fails the test cases are reported as skipped.
        """
        session = self.session(test_file)
        results: list[TestResult] = []

        try:
            if (setup := await session.before_all()) is not None:
                results.append(setup)

            for test, data_index in session.cases():
                result = await session.run_test(test, data_index)
                logger.info('Test %s %s', result.test_name, result.status)
                results.append(result)

        finally:
            if (teardown := await session.after_all()) is not None:
                results.append(teardown)

        return results

    async def run_test(self, test: 'TestCase', *,
                       test_file: 'TestFile | None' = None,
                       data_index: int | None = None) -> TestResult:
        """Run one test case, optionally in the scope of its file.

        Args:
            test: Test case.
            test_file: File providing variables, procedures and hooks.
            data_index: Data row position for a data-driven test case.

        Returns:
            The test result.
        """
        from pytest_blocks.schema import TestFile  # noqa: PLC0415

        session = self.session(test_file or TestFile(tests=[test]))

        return await session.run_test(test, data_index)
