"""Hard and soft assertion policy.

Assertion blocks never raise directly; they report their outcome through
`handle_assertion`. With soft assertions disabled a failure raises
`HardAssertionFailed` immediately, which the interpreter treats as an
ordinary step failure. With soft assertions enabled the failure is
collected in the context and the test case keeps running; the collected
failures are reported together by `flush_soft_assertions` at the test
case boundary.
"""

from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import ErrorContext, HardAssertionFailed, SoftAssertionAggregate
from pytest_blocks.schema import SoftAssertionError

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext


def handle_assertion(context: 'ExecutionContext', condition: bool, message: str, *,  # noqa: PLR0913
                     expected: Any = None,  # noqa: ANN401
                     actual: Any = None,  # noqa: ANN401
                     step_id: str | None = None,
                     step_type: str | None = None) -> None:
    """Apply the assertion policy of the context to an outcome.

    Args:
        context: Execution context of the running test.
        condition: Assertion outcome; `True` means passed.
        message: Failure message.
        expected: Expected value, for reporting.
        actual: Actual value, for reporting.
        step_id: Originating step, the current step by default.
        step_type: Originating block type, the current step's by default.

    Raises:
        HardAssertionFailed: If the assertion failed and soft
            assertions are disabled.
    """
    if condition:
        return

    if context.current_step is not None:
        step_id = step_id or context.current_step.id
        step_type = step_type or context.current_step.type

    if context.soft_assertions:
        context.soft_errors.append(SoftAssertionError(
            message=message,
            step_id=step_id,
            step_type=step_type,
            expected=expected,
            actual=actual,
        ))
        context.logger.warning('Soft assertion failed: %s', message)
        return

    raise HardAssertionFailed(
        message,
        expected=expected,
        actual=actual,
        context=ErrorContext(
            step_id=step_id,
            step_type=step_type,
            test_name=context.test_name,
            data_iteration=context.data_index,
        ),
    )


def get_soft_assertions(context: 'ExecutionContext') -> list[SoftAssertionError]:
    """Return a copy of the collected soft assertion failures."""
    return list(context.soft_errors)


def clear_soft_assertions(context: 'ExecutionContext') -> None:
    """Drop the collected soft assertion failures without reporting them."""
    context.soft_errors.clear()


def flush_soft_assertions(context: 'ExecutionContext') -> list[SoftAssertionError]:
    """Report the collected soft assertion failures.

    The accumulator is drained, so a second flush on the same context
    returns an empty list.

    Args:
        context: Execution context of the finishing test.

    Returns:
        An empty list when nothing was collected.

    Raises:
        SoftAssertionAggregate: Listing every collected failure, if any.
    """
    if not context.soft_errors:
        return []

    errors = get_soft_assertions(context)
    clear_soft_assertions(context)

    raise SoftAssertionAggregate(errors)
