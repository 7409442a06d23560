"""Per-run execution state.

An `ExecutionContext` is owned by exactly one running test case (one data
row of it, for data-driven tests). It carries the variable bindings, the
current data row, the soft assertion accumulator, a logger, a cooperative
cancellation signal and the procedure table used by the run. Nothing in
it is shared with other concurrently running contexts except the
read-mostly registries.
"""

import asyncio
import logging
from copy import copy
from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import ExecutionCancelled

if TYPE_CHECKING:
    from collections.abc import Awaitable, Mapping, MutableMapping

if TYPE_CHECKING:
    from pytest_blocks.core.procedures import ProcedureRegistry
    from pytest_blocks.schema import DataRow, SoftAssertionError, StepNode
    from pytest_blocks.values import RuntimeValue

logger = logging.getLogger(__name__)


class ContextDict(dict[str, Any]):
    """Variable bindings of an execution context."""

    def lookup(self, path: str) -> 'RuntimeValue':
        """Resolve a dotted path against the bindings.

        Args:
            path: Dotted variable path, for example `user.address.city`.

        Returns:
            The value, or `None` when the path does not resolve.
        """
        from pytest_blocks.resolver import MISSING, VariableLookup  # noqa: PLC0415

        value = VariableLookup(path).lookup(self)

        return None if value is MISSING else value


class StepLogger(logging.LoggerAdapter):
    """Logger adapter identifying the running test in every record.

    Messages are prefixed with the test name (and data row, if any) and the
    same values are attached to the record as `test_name` and
    `data_iteration` for structured handlers.
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:  # noqa: ANN401
        """Log a message, appending the `data` keyword argument as its repr."""
        if (data := kwargs.pop('data', None)) is not None:
            msg = f'{msg} %r'
            args = (*args, data)
            kwargs['extra'] = {**kwargs.get('extra', {}), 'data': data}

        super().log(level, msg, *args, **kwargs)

    def process(self, msg: Any,  # noqa: ANN401
                kwargs: 'MutableMapping[str, Any]') -> tuple[Any, 'MutableMapping[str, Any]']:
        """Prefix the message and attach the run identification."""
        extra = dict(self.extra or {})

        prefix = extra.get('test_name') or 'blocks'
        if (data_iteration := extra.get('data_iteration')) is not None:
            prefix += f'[{data_iteration}]'

        kwargs['extra'] = {**extra, **kwargs.get('extra', {})}

        return f'[{prefix}] {msg}', kwargs

    def bind(self, **extra: Any) -> 'StepLogger':  # noqa: ANN401
        """Return an adapter with additional record fields."""
        return StepLogger(self.logger, {**(self.extra or {}), **extra})


class ExecutionContext:
    """Mutable state of one test run.

    Attributes:
        variables: Variable bindings.
        current_data: Data row of a data-driven iteration, if any.
        data_index: Position of the data row, if any.
        soft_assertions: Whether assertion failures are collected.
        soft_errors: Collected, not yet flushed, assertion failures.
        procedures: Procedure table of the run.
        resources: Opaque collaborator handles (browser page, HTTP client).
        logger: Logger adapter of the run.
        cancel: Cooperative cancellation signal.
        current_step: Step being evaluated.
        call_depth: Number of procedure call frames being evaluated.
    """

    def __init__(self, *,  # noqa: PLR0913
                 procedures: 'ProcedureRegistry',
                 variables: 'Mapping[str, Any] | None' = None,
                 current_data: 'DataRow | None' = None,
                 data_index: int | None = None,
                 soft_assertions: bool = False,
                 resources: 'Mapping[str, Any] | None' = None,
                 test_name: str | None = None,
                 cancel: asyncio.Event | None = None,
                 log: logging.Logger | None = None) -> None:
        """Initialize a context.

        Args:
            procedures: Procedure table used by the run.
            variables: Initial variable bindings (copied).
            current_data: Data row for a data-driven iteration.
            data_index: Position of the data row.
            soft_assertions: Enable soft assertion collection.
            resources: Collaborator handles made available to blocks.
            test_name: Name of the running test, used in logs.
            cancel: Shared cancellation signal; a new one by default.
            log: Underlying logger; the module logger by default.
        """
        self.variables = ContextDict(variables or {})
        self.current_data = current_data
        self.data_index = data_index

        self.soft_assertions = soft_assertions
        self.soft_errors: list[SoftAssertionError] = []

        self.procedures = procedures
        self.resources: dict[str, Any] = dict(resources or {})

        self.test_name = test_name
        self.cancel = cancel if cancel is not None else asyncio.Event()
        self.logger = StepLogger(log or logger, {
            'test_name': test_name,
            'data_iteration': data_index,
        })

        self.current_step: StepNode | None = None
        self.call_depth = 0

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested."""
        return self.cancel.is_set()

    def abort(self) -> None:
        """Request cooperative cancellation of the run."""
        self.cancel.set()

    def raise_if_cancelled(self) -> None:
        """Raise `ExecutionCancelled` when cancellation was requested."""
        if self.cancelled:
            raise ExecutionCancelled

    async def guard[T](self, awaitable: 'Awaitable[T]') -> T:
        """Await an I/O operation unless cancellation is requested first.

        Block executors wrap their network or driver calls in this method
        so an in-flight operation is abandoned when the run is aborted.

        Args:
            awaitable: The I/O operation.

        Returns:
            The operation result.

        Raises:
            ExecutionCancelled: If cancellation wins the race.
        """
        self.raise_if_cancelled()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self.cancel.wait())

        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()

        if not task.done():
            task.cancel()
            raise ExecutionCancelled

        return task.result()

    def set_variable(self, name: str, value: Any) -> None:  # noqa: ANN401
        """Bind a variable, logging the write."""
        self.variables[name] = value
        self.logger.debug('Set variable %s', name, data=value)

    def get_variable(self, name: str) -> Any:  # noqa: ANN401
        """Read a variable or a dotted path, `None` if unbound."""
        return self.variables.lookup(name)

    def fork(self, *,
             variables: 'Mapping[str, Any] | None' = None,
             current_data: 'DataRow | None' = None,
             data_index: int | None = None,
             soft_assertions: bool | None = None,
             test_name: str | None = None) -> 'ExecutionContext':
        """Create an isolated context sharing procedures and resources.

        Variables are copied (shallowly), then updated with `variables`;
        the soft assertion accumulator of the fork starts empty.

        Args:
            variables: Additional bindings.
            current_data: Data row of the forked run.
            data_index: Position of the data row.
            soft_assertions: Soft mode, inherited when `None`.
            test_name: Name of the forked test.

        Returns:
            A new execution context.
        """
        return ExecutionContext(
            procedures=self.procedures,
            variables={**copy(self.variables), **(variables or {})},
            current_data=current_data,
            data_index=data_index,
            soft_assertions=self.soft_assertions if soft_assertions is None else soft_assertions,
            resources=self.resources,
            test_name=test_name or self.test_name,
            cancel=self.cancel,
            log=self.logger.logger,
        )
