"""Procedure registry and call argument resolution.

Procedures are named, parameterized step bodies. The registry mirrors the
block registry: `define` overwrites by name, and `child()` returns a
copy-on-write view whose definitions and `clear()` calls stay local, so a
test run can define procedures without leaking them into other runs.

Procedures declared in a test file are additionally exposed as
`custom_<name>` blocks through `procedure_block`.
"""

from json import JSONDecodeError, loads
from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import ProcedureNotFound, ResolveError
from pytest_blocks.names import custom_block_type
from pytest_blocks.schema import BlockDescriptor, BlockInput, InlineExpand

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.schema import ProcedureDefinition


class ProcedureRegistry:
    """Mapping of procedure names to definitions."""

    def __init__(self, parent: 'ProcedureRegistry | None' = None) -> None:
        """Initialize an empty registry.

        Args:
            parent: Registry consulted for names not defined locally.
        """
        self.parent = parent
        self._procedures: dict[str, ProcedureDefinition] = {}

    def define(self, name: str, definition: 'ProcedureDefinition') -> None:
        """Insert or overwrite a procedure by name."""
        self._procedures[name] = definition

    def lookup(self, name: str) -> 'ProcedureDefinition | None':
        """Return a procedure by name, or `None`."""
        if (definition := self._procedures.get(name)) is not None:
            return definition

        if self.parent is not None:
            return self.parent.lookup(name)

        return None

    def require(self, name: str) -> 'ProcedureDefinition':
        """Return a procedure by name.

        Raises:
            ProcedureNotFound: If the procedure is not defined.
        """
        if (definition := self.lookup(name)) is None:
            raise ProcedureNotFound(name)

        return definition

    def clear(self) -> None:
        """Remove every procedure visible through this registry.

        For a child registry the parent is detached rather than cleared.
        """
        self._procedures.clear()
        self.parent = None

    def names(self) -> list[str]:
        """Return the sorted names of visible procedures."""
        names = set(self._procedures)
        if self.parent is not None:
            names.update(self.parent.names())

        return sorted(names)

    def child(self) -> 'ProcedureRegistry':
        """Return a copy-on-write view of this registry."""
        return ProcedureRegistry(parent=self)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __iter__(self) -> 'Iterator[str]':
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.names())


def _decode_value(text: str) -> Any:  # noqa: ANN401
    """Decode one positional argument, keeping undecodable text as is."""
    text = text.strip()
    try:
        return loads(text)
    except (JSONDecodeError, ValueError):
        return text


def resolve_call_arguments(args: 'str | Mapping[str, Any] | None',
                           procedure: 'ProcedureDefinition') -> dict[str, Any]:
    """Map call arguments to procedure parameters.

    Arguments given as a JSON object (or as a mapping) are used by name; a
    JSON array, or comma-separated text that is not valid JSON, is matched
    positionally against the declared parameter order, each item decoded
    as JSON when possible and kept as trimmed text otherwise. Parameters
    not supplied either way take their declared defaults.

    Args:
        args: Argument text or mapping.
        procedure: Called procedure.

    Returns:
        Mapping of parameter names to values.

    Raises:
        ResolveError: If more positional values are given than the
            procedure declares parameters.
    """
    named: dict[str, Any] = {}
    positional: list[Any] = []

    if isinstance(args, dict):
        named = dict(args)
    elif isinstance(args, (list, tuple)):
        positional = list(args)
    elif isinstance(args, str) and args.strip():
        try:
            decoded = loads(args)
        except (JSONDecodeError, ValueError):
            positional = [_decode_value(item) for item in args.split(',')]
        else:
            if isinstance(decoded, dict):
                named = decoded
            elif isinstance(decoded, list):
                positional = decoded
            else:
                positional = [decoded]
    elif args not in (None, ''):
        positional = [args]

    if len(positional) > len(procedure.params):
        raise ResolveError(
            f'Procedure {procedure.name!r} takes {len(procedure.params)} '
            f'argument(s) but {len(positional)} were given',
        )

    resolved = dict(named)
    for position, param in enumerate(procedure.params):
        if position < len(positional):
            resolved[param.name] = positional[position]
        elif param.name not in resolved and param.default is not None:
            resolved[param.name] = param.default

    return resolved


def procedure_block(definition: 'ProcedureDefinition', *,
                    category: str = 'Custom') -> BlockDescriptor:
    """Build the `custom_<name>` block of a file-level procedure.

    The block declares one text field per parameter, named after the
    parameter in upper case. Its executor expands the procedure body in
    place of the invoking step as a call frame binding the field values to
    the parameter names.

    Args:
        definition: Procedure definition.
        category: Category of the generated block.

    Returns:
        Block descriptor.
    """
    def execute(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> InlineExpand:
        bindings = {}
        for param in definition.params:
            value = params.get(param.name.upper())
            if value is None:
                value = param.default
            bindings[param.name] = value

        return InlineExpand(
            steps=definition.steps,
            name=definition.name,
            frame=True,
            bindings=bindings,
        )

    return BlockDescriptor(
        type=custom_block_type(definition.name),
        category=category,
        tooltip=definition.description or f'Run procedure {definition.name!r}',
        inputs=[
            BlockInput(
                name=param.name.upper(),
                kind='field',
                field_type='text',
                default=param.default,
            )
            for param in definition.params
        ],
        executor=execute,
    )
