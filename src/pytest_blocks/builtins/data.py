"""Built-in data blocks.

These blocks read the data row of a data-driven test case and build data
sets: `data_range`, `data_define` and `data_table` produce lists of
`{name, values}` rows, `data_row` builds a single one and
`data_from_variable` reads a stored set. `data_foreach` iterates over any
array binding both the item and its index.
"""

from json import JSONDecodeError, loads
from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import LeafExecutionError
from pytest_blocks.extensions import create_action_block, create_value_block
from pytest_blocks.schema import CollectionLoop
from pytest_blocks.values import MAPPINGS, SEQUENCES, to_number, to_text

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext

ANY_OUTPUT = ['String', 'Number', 'Boolean', 'Object', 'Array']


def get_current(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> Any:  # noqa: ANN401
    """Read `KEY` from the current data row.

    Raises:
        LeafExecutionError: Outside of a data-driven test case.
    """
    if context.current_data is None:
        raise LeafExecutionError(
            'No data set available. This block must be used inside a data-driven test.',
        )

    key = to_text(params['KEY'])
    if key not in context.current_data.values:
        context.logger.warning('Data key %r not found in current data set', key)

    return context.current_data.values.get(key)


def get_index(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> int:
    return context.data_index or 0


def foreach(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> CollectionLoop:
    """Run the `DO` slot once per item of `DATA`."""
    items = params.get('DATA')
    if items is None:
        items = []

    if isinstance(items, MAPPINGS) or not isinstance(items, SEQUENCES):
        raise LeafExecutionError(f'Expected an array of data, got {type(items).__name__}')

    return CollectionLoop(
        items=list(items),
        binding=to_text(params['ITEM_VAR']),
        index_binding=to_text(params['INDEX_VAR']) or None,
    )


def range_(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> list[dict[str, Any]]:
    """Build rows `{name: 'n=<i>', values: {n: i}}` for `START..END` inclusive.

    Raises:
        LeafExecutionError: If `STEP` is not positive.
    """
    start, end = to_number(params['START']), to_number(params['END'])
    step = to_number(params['STEP'])
    name = to_text(params['VAR_NAME'])

    if step <= 0:
        raise LeafExecutionError(f'Range step must be positive, got {step}')

    rows = []
    value = start
    while value <= end:
        rows.append({'name': f'{name}={value}', 'values': {name: value}})
        value += step

    return rows


def define(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> list[Any]:
    """Decode the `DATA_JSON` array."""
    value = params.get('DATA_JSON')
    if isinstance(value, SEQUENCES):
        return list(value)

    try:
        value = loads(to_text(value))
    except JSONDecodeError as base:
        raise LeafExecutionError(f'Invalid data JSON: {base.msg}') from base

    if not isinstance(value, list):
        raise LeafExecutionError(f'Expected a JSON array of data, got {type(value).__name__}')

    return value


def _decode_cell(text: str) -> Any:  # noqa: ANN401
    """Decode one table cell as JSON, keeping undecodable text as is."""
    text = text.strip()
    try:
        return loads(text)
    except (JSONDecodeError, ValueError):
        return text


def table(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> list[dict[str, Any]]:
    """Build rows from comma-separated `HEADERS` and newline-separated `ROWS`.

    Each non-blank line of `ROWS` becomes `{name: 'Row <n>', values: {...}}`
    with cells matched to headers by position. Cells are decoded as JSON
    when possible, so `1` and `true` keep their types. Missing cells are
    `None` and surplus cells are dropped.
    """
    headers = [header.strip() for header in to_text(params['HEADERS']).split(',')]
    lines = [line for line in to_text(params['ROWS']).splitlines() if line.strip()]

    rows = []
    for number, line in enumerate(lines, start=1):
        cells = [_decode_cell(cell) for cell in line.split(',')]
        values = {
            header: cells[position] if position < len(cells) else None
            for position, header in enumerate(headers)
        }
        rows.append({'name': f'Row {number}', 'values': values})

    return rows


def row(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> dict[str, Any]:
    """Build one `{name, values}` row from `NAME` and the `JSON` object.

    Raises:
        LeafExecutionError: If `JSON` is not a JSON object.
    """
    values = params.get('JSON')
    if not isinstance(values, MAPPINGS):
        try:
            values = loads(to_text(values))
        except JSONDecodeError as base:
            raise LeafExecutionError(f'Invalid row JSON: {base.msg}') from base

    if not isinstance(values, MAPPINGS):
        raise LeafExecutionError(f'Expected a JSON object of values, got {type(values).__name__}')

    return {'name': to_text(params.get('NAME') or '') or None, 'values': dict(values)}


def get_name(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> str:
    """Return the current row name, `Iteration <n>` for unnamed rows."""
    if context.current_data is not None and context.current_data.name:
        return context.current_data.name

    return f'Iteration {(context.data_index or 0) + 1}'


def from_variable(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> Any:  # noqa: ANN401
    """Read the data set stored in variable `NAME`, `[]` if unbound or empty."""
    return context.get_variable(to_text(params['NAME'])) or []


blocks = [
    create_value_block(
        'data_get_current',
        get_current,
        output=ANY_OUTPUT,
        category='Data',
        color='#00897B',
        tooltip='Get a value from the current data set',
        inputs=[{'name': 'KEY', 'kind': 'field', 'field_type': 'text', 'required': True}],
    ),
    create_value_block(
        'data_get_index',
        get_index,
        output='Number',
        category='Data',
        color='#00897B',
        tooltip='Get the current data iteration index (0-based)',
    ),
    create_action_block(
        'data_foreach',
        foreach,
        category='Data',
        color='#00897B',
        tooltip='Run steps for each item in a data set',
        inputs=[
            {'name': 'DATA', 'kind': 'value', 'check': 'Array', 'required': True},
            {'name': 'ITEM_VAR', 'kind': 'field', 'field_type': 'text', 'default': 'item'},
            {'name': 'INDEX_VAR', 'kind': 'field', 'field_type': 'text', 'default': 'index'},
            {'name': 'DO', 'kind': 'statement'},
        ],
    ),
    create_value_block(
        'data_range',
        range_,
        output='Array',
        category='Data',
        color='#00897B',
        tooltip='Generate a range of numbers as data',
        inputs=[
            {'name': 'START', 'kind': 'field', 'field_type': 'number', 'default': 1},
            {'name': 'END', 'kind': 'field', 'field_type': 'number', 'default': 10},
            {'name': 'STEP', 'kind': 'field', 'field_type': 'number', 'default': 1},
            {'name': 'VAR_NAME', 'kind': 'field', 'field_type': 'text', 'default': 'n'},
        ],
    ),
    create_value_block(
        'data_define',
        define,
        output='Array',
        category='Data',
        color='#00897B',
        tooltip='Define test data sets for data-driven testing',
        inputs=[{
            'name': 'DATA_JSON',
            'kind': 'field',
            'field_type': 'text',
            'default': '[{"name": "test1", "value": 1}]',
        }],
    ),
    create_value_block(
        'data_table',
        table,
        output='Array',
        category='Data',
        color='#00897B',
        tooltip='Create a data table with headers and rows',
        inputs=[
            {
                'name': 'HEADERS',
                'kind': 'field',
                'field_type': 'text',
                'default': 'username, password, expected',
            },
            {
                'name': 'ROWS',
                'kind': 'field',
                'field_type': 'text',
                'default': 'user1, pass1, true\nuser2, pass2, false',
            },
        ],
    ),
    create_value_block(
        'data_row',
        row,
        output='Object',
        category='Data',
        color='#00897B',
        tooltip='Create a single data row with key-value pairs',
        inputs=[
            {'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'default': ''},
            {'name': 'JSON', 'kind': 'field', 'field_type': 'text', 'default': '{}'},
        ],
    ),
    create_value_block(
        'data_get_name',
        get_name,
        output='String',
        category='Data',
        color='#00897B',
        tooltip='Get the name of the current data set',
    ),
    create_value_block(
        'data_from_variable',
        from_variable,
        output='Array',
        category='Data',
        color='#00897B',
        tooltip='Get test data from a variable',
        inputs=[{'name': 'NAME', 'kind': 'field', 'field_type': 'text', 'required': True}],
    ),
]
