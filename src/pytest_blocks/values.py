"""Core value types for the block runtime.

This module defines the value vocabulary shared by the interpreter, the
variable resolver and block executors. Block graphs are data, so every
value flowing between steps is one of a small set of JSON-like shapes
plus opaque runtime objects provided by collaborators (browser pages,
HTTP responses and similar handles).

It also provides the canonical text rendering used when a value is
substituted into a `${...}` placeholder.
"""

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta
from json import dumps
from typing import Any

#: Scalars represent fully resolved, atomic values.
type Scalar = date | datetime | timedelta | str | bytes | int | float | bool

#: A value is considered plain if it is built only from scalars,
#: sequences and string-keyed mappings.
type Value = Scalar | Sequence['Value'] | Mapping[str, 'Value'] | None

#: Any Python object produced by a block executor or a collaborator
#: before it is consumed by another block.
type RuntimeValue = Any

MAPPINGS = (dict,)
SCALARS = (date, datetime, timedelta, str, bytes, int, float, bool)
SEQUENCES = (list, tuple, set)


def _json_default(value: RuntimeValue) -> RuntimeValue:
    """Fallback encoder for values JSON does not know about."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()

    if isinstance(value, timedelta):
        return value.total_seconds()

    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')

    if isinstance(value, set):
        return sorted(value, key=str)

    return str(value)


def _integral(value: RuntimeValue) -> RuntimeValue:
    """Replace floats holding whole numbers with integers, recursively."""
    if isinstance(value, float) and value.is_integer():
        return int(value)

    if isinstance(value, MAPPINGS):
        return {key: _integral(item) for key, item in value.items()}

    if isinstance(value, (list, tuple)):
        return [_integral(item) for item in value]

    return value


def to_json(value: RuntimeValue) -> str:
    """Encode a value as compact JSON.

    Numbers have one spelling: `3.0` is encoded as `3`.

    Args:
        value: Arbitrary runtime value.

    Returns:
        JSON document without insignificant whitespace.
    """
    return dumps(_integral(value), separators=(',', ':'), ensure_ascii=False, default=_json_default)


def to_text(value: RuntimeValue) -> str:
    """Render a value in its placeholder substitution form.

    Structured values (mappings and sequences) are JSON-encoded, booleans
    use their JSON spelling and everything else uses the natural string
    representation, with whole-number floats rendered as integers.

    Args:
        value: Value to render.

    Returns:
        Text suitable for in-place substitution.
    """
    if isinstance(value, bool):
        return 'true' if value else 'false'

    if isinstance(value, (*MAPPINGS, *SEQUENCES)):
        return to_json(value)

    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')

    return str(_integral(value))


def to_number(value: RuntimeValue) -> int | float:
    """Coerce a value to a number.

    Integers and floats are returned unchanged (booleans become `0`/`1`),
    strings are parsed as an integer first and then as a float.

    Args:
        value: Value to coerce.

    Returns:
        Numeric value.

    Raises:
        TypeError: If the value can not be treated as a number.
    """
    if isinstance(value, bool):
        return int(value)

    if isinstance(value, (int, float)):
        return value

    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            pass

    raise TypeError(f'{value!r} is not a number')


def to_bool(value: RuntimeValue) -> bool:
    """Coerce a value to a boolean.

    The strings `false`, `0`, `no` and the empty string are false,
    case-insensitively; other values follow Python truthiness.

    Args:
        value: Value to coerce.

    Returns:
        Boolean value.
    """
    if isinstance(value, str):
        return value.strip().lower() not in {'', 'false', '0', 'no', 'off', 'null'}

    return bool(value)
