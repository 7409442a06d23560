"""Block names primitive types and validation rules.

This module defines the identifier patterns used by block types, variables,
procedures and `${...}` placeholders, together with strongly-typed aliases
used in the data models.

The rules defined here form part of the public contract relied upon by
test file parsers, plugins and block executors.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for all identifiers.
#: Identifiers start with a letter or an underscore and may contain letters,
#: digits or underscores.
_NAME_PATTERN = r'[a-zA-Z_][\w]*'

#: Compiled pattern for block type identifiers.
#: Supports builtin blocks ("logic_if") and plugin-qualified ones ("http.get").
BLOCK_TYPE_PATTERN = regexp(
    rf'^((?P<plugin>{_NAME_PATTERN})\.)?(?P<name>{_NAME_PATTERN})$',
    flags=ASCII,
)

#: Compiled pattern for variable identifiers.
VARIABLE_PATTERN = regexp(
    rf'^(?P<name>{_NAME_PATTERN})$',
    flags=ASCII,
)

#: Compiled pattern for `${name}` and `${name.path.to.value}` placeholders.
PLACEHOLDER_PATTERN = regexp(
    rf'\$\{{(?P<path>{_NAME_PATTERN}(?:\.\w+)*)\}}',
    flags=ASCII,
)

#: Prefix of blocks generated from procedures declared in test files.
CUSTOM_BLOCK_PREFIX = 'custom_'

#: Runs of characters a procedure name may hold but a block type may not.
_CUSTOM_SEPARATOR_PATTERN = regexp(r'\W+', flags=ASCII)


BlockType = Annotated[
    str, Field(
        pattern=rf'^({_NAME_PATTERN}\.)?{_NAME_PATTERN}$',
        title='Block type identifier',
        description=(
            'Type of the block instantiated by a step. '
            'A block type may be a builtin name (for example, `logic_if`) '
            'or a plugin-qualified name using dot notation '
            '(for example, `http.get`).'
        ),
        examples=[
            'logic_if',
            'http.get',
        ],
    ),
]

Variable = Annotated[
    str, Field(
        pattern=rf'^{_NAME_PATTERN}$',
        title='Variable identifier',
        description=(
            'Name of a variable used to store or reference values within '
            'a test execution context. Names are restricted to ASCII '
            'letters, digits and underscores.'
        ),
        examples=[
            'userId',
            'api_token',
        ],
    ),
]

ProcedureName = Annotated[
    str, Field(
        min_length=1,
        title='Procedure name',
        description='Name of a reusable procedure, unique within its registry.',
        examples=[
            'login',
            'create_user',
        ],
    ),
]


def custom_block_type(procedure: str) -> str:
    """Return the block type generated for a file-level procedure.

    The name is lowercased and every run of whitespace or punctuation
    becomes an underscore, so `Fill Form` yields `custom_fill_form`.

    Args:
        procedure: Procedure name.

    Returns:
        Block type identifier (for example, `custom_login`).
    """
    name = _CUSTOM_SEPARATOR_PATTERN.sub('_', procedure.strip().lower())

    return f'{CUSTOM_BLOCK_PREFIX}{name}'
