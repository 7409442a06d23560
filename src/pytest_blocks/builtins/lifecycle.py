"""Built-in lifecycle blocks."""

from typing import TYPE_CHECKING, Any

from pytest_blocks.errors import SkipStep
from pytest_blocks.extensions import create_action_block
from pytest_blocks.values import to_bool, to_text

if TYPE_CHECKING:
    from collections.abc import Mapping

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext


def skip_if(params: 'Mapping[str, Any]', context: 'ExecutionContext') -> None:
    """Skip the rest of the test case when `CONDITION` holds.

    Raises:
        SkipStep: If the condition is true.
    """
    if to_bool(params.get('CONDITION')):
        reason = to_text(params.get('REASON') or 'Condition not met')
        context.logger.info('Skipping: %s', reason)
        raise SkipStep(reason)


blocks = [
    create_action_block(
        'lifecycle_skip_if',
        skip_if,
        category='Lifecycle',
        color='#757575',
        tooltip='Skip the rest of the test if condition is true',
        inputs=[
            {'name': 'CONDITION', 'kind': 'value', 'check': 'Boolean', 'required': True},
            {'name': 'REASON', 'kind': 'field', 'field_type': 'text', 'default': 'Condition not met'},
        ],
    ),
]
