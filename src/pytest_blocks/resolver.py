"""Variable placeholder resolution.

Strings flowing into block executors may contain `${name}` or
`${name.path.to.value}` placeholders. They are substituted against the
current data row first and the context variables second. Resolution is
tolerant: an unknown name or a broken path leaves the placeholder text
untouched and never raises.
"""

from typing import TYPE_CHECKING, Final

from pytest_blocks.names import PLACEHOLDER_PATTERN, VARIABLE_PATTERN
from pytest_blocks.values import MAPPINGS, SEQUENCES, to_text

if TYPE_CHECKING:
    from collections.abc import Mapping
    from re import Match

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.values import RuntimeValue


class _Missing:
    """Marker type of a value that could not be found."""

    def __repr__(self) -> str:
        return '<missing>'

    def __bool__(self) -> bool:
        return False


#: Returned by lookups when a path does not lead to a value.
MISSING: Final = _Missing()


class VariableLookup:
    """Resolver for dotted-path variable access.

    Resolves values from nested data structures (mappings, sequences and
    plain objects) using a dot-separated path. Any missing key, invalid
    index, `None` intermediate or non-traversable value yields `MISSING`
    instead of raising.
    """

    def __init__(self, path: str) -> None:
        """Initialize the resolver with a dotted path.

        Args:
            path: Dot-separated path. Each segment is a mapping key,
                an attribute name or, for sequences, a decimal index.

        Raises:
            ValueError: If the leading segment is not a valid name.
        """
        self.path = path.strip().split('.')

        if not VARIABLE_PATTERN.match(self.path[0]):
            raise ValueError(f'Invalid variable path: {path!r}')

    @property
    def name(self) -> str:
        """Leading variable name of the path."""
        return self.path[0]

    def __call__(self, *scopes: 'Mapping[str, RuntimeValue] | None') -> 'RuntimeValue':
        """Resolve the path against the first scope that binds its name."""
        return self.lookup(*scopes)

    def lookup(self, *scopes: 'Mapping[str, RuntimeValue] | None') -> 'RuntimeValue':
        """Resolve the path against a chain of scopes.

        The leading name selects the first scope that binds it to a value
        other than `None`; later scopes are not consulted once a scope
        binds the name, even if the remaining path is broken.

        Args:
            *scopes: Mappings searched in order; `None` entries are skipped.

        Returns:
            The resolved value or `MISSING`.
        """
        for scope in scopes:
            if not scope or self.name not in scope:
                continue
            if scope[self.name] is None:
                continue
            return self.resolve(scope, 1)

        return MISSING

    def resolve(self, val: 'RuntimeValue', depth: int = 1) -> 'RuntimeValue':
        """Resolve the path against a value.

        Args:
            val: Current value being resolved.
            depth: Current depth of traversal (used internally).

        Returns:
            The resolved value if the full path is valid, otherwise `MISSING`.
        """
        if val is None or val is MISSING:
            return MISSING

        if depth > len(self.path):
            return val

        key = self.path[depth - 1]
        if not key:
            return MISSING

        next_val: RuntimeValue = MISSING
        if isinstance(val, MAPPINGS):
            next_val = val.get(key, MISSING)
        elif isinstance(val, SEQUENCES) and not isinstance(val, set):
            if key.isdecimal() and int(key) < len(val):
                next_val = val[int(key)]
        elif not isinstance(val, (str, bytes, int, float, bool)):
            next_val = getattr(val, key, MISSING)

        return self.resolve(next_val, depth + 1)


class VariableResolver:
    """Substitutes `${...}` placeholders against an execution context.

    Resolution is pure: it reads the context and never mutates it.
    """

    @classmethod
    def lookup(cls, path: str, context: 'ExecutionContext') -> 'RuntimeValue':
        """Look a dotted path up in the data row, then in the variables.

        Args:
            path: Dotted variable path.
            context: Execution context.

        Returns:
            The value or `MISSING`.
        """
        try:
            lookup = VariableLookup(path)
        except ValueError:
            return MISSING

        data = context.current_data.values if context.current_data else None

        return lookup(data, context.variables)

    @classmethod
    def resolve(cls, text: 'RuntimeValue', context: 'ExecutionContext') -> 'RuntimeValue':
        """Substitute all placeholders in a string.

        Found values are rendered with `to_text` (structured values as
        JSON); placeholders that can not be resolved are left verbatim.
        Non-string input is returned unchanged.

        Args:
            text: Text to resolve.
            context: Execution context.

        Returns:
            The resolved text.
        """
        if not isinstance(text, str) or '${' not in text:
            return text

        def replace(match: 'Match[str]') -> str:
            value = cls.lookup(match['path'], context)
            if value is MISSING:
                return match[0]
            return to_text(value)

        return PLACEHOLDER_PATTERN.sub(replace, text)

    @classmethod
    def resolve_object(cls, value: 'RuntimeValue', context: 'ExecutionContext') -> 'RuntimeValue':
        """Resolve placeholders recursively through mappings and sequences.

        Non-string leaves are returned untouched.

        Args:
            value: Arbitrary value.
            context: Execution context.

        Returns:
            A resolved copy of the value.
        """
        if isinstance(value, str):
            return cls.resolve(value, context)

        if isinstance(value, MAPPINGS):
            return {
                key: cls.resolve_object(item, context)
                for key, item in value.items()
            }

        if isinstance(value, (list, tuple)):
            return type(value)(
                cls.resolve_object(item, context)
                for item in value
            )

        return value

    @staticmethod
    def has_variables(text: 'RuntimeValue') -> bool:
        """Whether a string contains at least one placeholder."""
        return isinstance(text, str) and PLACEHOLDER_PATTERN.search(text) is not None
