"""Core exception hierarchy.

This module defines the error and warning types used across the engine to
report plugin loading issues, test file schema failures and runtime step
failures. Every runtime failure of a step is one of the `BlockRuntimeError`
subclasses so callers (the interpreter, the runner, `logic_try_catch`) can
treat them uniformly.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

from pytest_blocks.values import MAPPINGS, SCALARS, SEQUENCES

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint
    from typing import Self

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails, ValidationError

if TYPE_CHECKING:
    from pytest_blocks.values import RuntimeValue

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_SEPARATOR = f' ---{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unicode string>'
FORMAT_INDENT = 4


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the source file where the error occurred.
    filename: str | None

    #: Line number in the source file.
    line_num: int | None
    #: Column number in the source file.
    column_num: int | None

    #: Name of the test case being executed.
    test_name: str | None
    #: Index of the data row for data-driven iterations.
    data_iteration: int | None

    #: Identifier of the failing step.
    step_id: str | None
    #: Block type of the failing step.
    step_type: str | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Variables available at the moment of failure.
    context: dict[str, Any] | None
    #: Element (step, document fragment) associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting block related errors.

    Produces human-readable messages with optional location information
    and a YAML snippet describing the failing element.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source and execution location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including filename, line,
            column, test name and step when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            message += f', line {line_num + 1}'
            if (column_num := context.get('column_num')) is not None:
                message += f', column {column_num + 1}'
        message += linesep

        if test_name := context.get('test_name'):
            message += f'{indent}in test "{test_name}"'
            if (data_iteration := context.get('data_iteration')) is not None:
                message += f', data row {data_iteration + 1}'
            message += linesep

        if step_id := context.get('step_id'):
            message += f'{indent}on step "{step_id}"'
            if step_type := context.get('step_type'):
                message += f' ({step_type})'
            message += linesep

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element or exception data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        if (error := context.get('error')) and isinstance(error, MarkedYAMLError):
            snippet = ''
            if error.problem_mark is not None:
                snippet = error.problem_mark.get_snippet(indent=0) or ''
            return cls._make_indent(snippet, indent)

        if element := context.get('element'):
            return cls._make_snippet(element, context, indent)

        return ''

    @classmethod
    def _make_snippet(cls, element: Any,  # noqa: ANN401
                      context: ErrorContext, indent: str) -> str:
        """Build a YAML-based snippet for an element."""
        snippet = f'{indent}{SNIPPET_ELLIPSIS}'

        if values := context.get('context'):
            snippet += cls._make_yaml({'variables': {**values}}, indent)
            snippet += linesep
            snippet += f'{indent}{SNIPPET_SEPARATOR}'

        snippet += cls._make_yaml(element, indent)
        snippet += linesep

        return snippet

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Non-scalar and non-container objects are replaced with a placeholder
        so that opaque runtime handles are never dumped.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a sanitized value to an indented YAML string."""
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
            allow_unicode=True,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string, dropping blank lines."""
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation given as a string or a number of spaces."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class PluginWarning(UserWarning):
    """Warning emitted for non-fatal plugin-related issues.

    Used when a plugin can not be loaded or shadows an existing block,
    while running in non-strict mode.
    """


class BlockError(Exception, ErrorFormatter):
    """Base exception for all pytest-blocks errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    #: Stable machine-readable error code used in results.
    code: str = 'block_error'

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional runtime values.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)

    def with_context(self, **context: Any) -> 'Self':  # noqa: ANN401
        """Merge additional location information into the error context.

        Already known values are kept, so the innermost frame wins.

        Args:
            **context: `ErrorContext` fields to add.

        Returns:
            The same error instance.
        """
        merged = ErrorContext(**{  # type: ignore[typeddict-item]
            key: value
            for key, value in context.items()
            if value is not None
        })
        merged.update(self.context or {})
        self.context = merged

        return self


class PluginError(BlockError):
    """Error raised for fatal plugin-related failures.

    Raised when a plugin entry point is invalid or fails to load,
    or when a block is shadowed, in strict mode.
    """

    code = 'plugin_error'

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a plugin error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional plugin entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)


class BlockSchemaError(BlockError):
    """Error raised when a test file document is invalid."""

    code = 'schema_error'

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError) -> 'Self':
        """Create a schema error from a YAML parsing failure.

        Args:
            error: Exception raised by the YAML parser.

        Returns:
            BlockSchemaError representing the YAML parsing failure.
        """
        error_context = ErrorContext(error=error)
        if mark := error.problem_mark:
            error_context.update(
                filename=mark.name,
                line_num=mark.line,
                column_num=mark.column,
            )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)

    @classmethod
    def from_pydantic_error(cls, error: 'ValidationError', *,
                            data: Any = None,  # noqa: ANN401
                            filename: str | None = None) -> 'Self':
        """Create a schema error from a Pydantic validation failure.

        The first error that can be located in the source data is used
        to build a focused snippet of the offending fragment.

        Args:
            error: ValidationError raised by Pydantic.
            data: Document data that failed validation.
            filename: Name of the source file.

        Returns:
            BlockSchemaError representing the validation failure.
        """
        error_context = ErrorContext(
            filename=filename,
            error=error,
            element=data,
        )

        if not data or not isinstance(data, dict):
            return cls('Type validation error', context=error_context)

        for item in error.errors(include_url=False, include_input=False):
            if located := cls._locate_pydantic_context(data, item):
                message, value = located
                return cls(message, context=ErrorContext({**error_context, 'element': value}))

        return cls('Validation error', context=error_context)

    @classmethod
    def _locate_pydantic_context(cls, value: Any,  # noqa: ANN401
                                 error: 'ErrorDetails') -> tuple[str, Any] | None:
        """Locate the most specific failing element in validated data.

        Walks the Pydantic error location path and extracts the minimal
        substructure responsible for the failure.

        Args:
            value: Root data structure being validated.
            error: Pydantic error details including location path.

        Returns:
            A tuple of (error message, extracted element), or None.
        """
        container = last_item = value
        last_key: int | str | None = None

        for key in error['loc']:
            if isinstance(last_item, (list, tuple)):
                if isinstance(key, int) and 0 <= key < len(last_item):
                    container = last_item
                    last_item = last_item[key]
                    last_key = key
            elif isinstance(last_item, dict):
                if key in last_item:
                    container = last_item
                    last_item = last_item[key]
                    last_key = key
            else:
                return None

        message = None
        if isinstance(last_key, (int, str)):
            for line in (error.get('msg') or '').splitlines():
                if line.strip():
                    message = line.strip()
                    break

        if message:
            if isinstance(container, (list, tuple)):
                return message, [last_item]
            if isinstance(container, dict):
                return message, {last_key: last_item}

        return None


class BlockRuntimeError(BlockError):
    """Error raised while executing a step.

    Every failure a step can produce derives from this class; an enclosing
    `logic_try_catch` block is the only construct that stops its propagation.
    """

    code = 'runtime_error'

    @property
    def trace(self) -> str | None:
        """Trace of the underlying failure, if any."""
        return None


class UnknownBlockType(BlockRuntimeError):
    """No block is registered for a step's block type."""

    code = 'unknown_block_type'

    def __init__(self, block_type: str) -> None:
        """Initialize the error.

        Args:
            block_type: The unregistered block type.
        """
        self.block_type = block_type

        super().__init__(f'Unknown block type: {block_type!r}')


class ProcedureNotFound(BlockRuntimeError):
    """A called procedure is not defined in the active registry."""

    code = 'procedure_not_found'

    def __init__(self, name: str) -> None:
        """Initialize the error.

        Args:
            name: The missing procedure name.
        """
        self.name = name

        super().__init__(f'Procedure not found: {name!r}')


class ResolveError(BlockRuntimeError):
    """Step parameters or call arguments can not be resolved.

    Raised for missing required inputs and for procedure call arguments
    that are neither a structured object nor mappable positionally.
    """

    code = 'resolve_error'


class HardAssertionFailed(BlockRuntimeError, AssertionError):
    """An assertion failed while soft assertions are disabled."""

    code = 'assertion_failed'

    def __init__(self, message: str, *,
                 expected: 'RuntimeValue' = None,
                 actual: 'RuntimeValue' = None,
                 context: ErrorContext | None = None) -> None:
        """Initialize the error.

        Args:
            message: Assertion message.
            expected: Expected value, if known.
            actual: Actual value, if known.
            context: Error context containing optional runtime values.
        """
        self.expected = expected
        self.actual = actual

        super().__init__(message, context=context)


class SoftAssertionAggregate(BlockRuntimeError, AssertionError):
    """All soft assertion failures collected during a test case."""

    code = 'soft_assertions_failed'

    def __init__(self, errors: list[Any]) -> None:
        """Initialize the aggregate.

        Args:
            errors: Collected `SoftAssertionError` records, in order.
        """
        self.errors = list(errors)

        lines = [f'{len(self.errors)} assertion(s) failed:']
        lines.extend(
            f'  {position}. {error.message}'
            for position, error in enumerate(self.errors, start=1)
        )

        super().__init__('\n'.join(lines))


class LeafExecutionError(BlockRuntimeError):
    """A block executor raised an unexpected exception.

    The original exception is kept as `__cause__` and its formatted
    traceback is preserved in `trace`.
    """

    code = 'leaf_error'

    def __init__(self, message: str, *,
                 trace: str | None = None,
                 context: ErrorContext | None = None) -> None:
        """Initialize the error.

        Args:
            message: Message of the underlying exception.
            trace: Formatted traceback of the underlying exception.
            context: Error context containing optional runtime values.
        """
        self._trace = trace

        super().__init__(message, context=context)

    @property
    def trace(self) -> str | None:
        """Formatted traceback of the wrapped exception."""
        return self._trace

    @classmethod
    def from_exception(cls, error: BaseException) -> 'Self':
        """Wrap an arbitrary exception raised by a block executor.

        Args:
            error: The original exception.

        Returns:
            LeafExecutionError chained to the original exception.
        """
        from traceback import format_exception  # noqa: PLC0415

        message = str(error) or type(error).__name__
        wrapped = cls(message, trace=''.join(format_exception(error)))
        wrapped.__cause__ = error

        return wrapped


class ExecutionCancelled(BlockRuntimeError):
    """The execution was aborted through the context cancellation signal."""

    code = 'cancelled'

    def __init__(self, message: str = 'Execution cancelled') -> None:
        """Initialize the error."""
        super().__init__(message)


class SkipStep(Exception):  # noqa: N818
    """Signal raised by a block to skip the rest of the current test case.

    Not a failure: the step and the test case are reported as skipped.
    """

    def __init__(self, reason: str = 'Skipped') -> None:
        """Initialize the signal.

        Args:
            reason: Human-readable skip reason.
        """
        self.reason = reason

        super().__init__(reason)
