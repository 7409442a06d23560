"""Command-line utilities for pytest-blocks.

Lists the registered blocks, prints the JSON Schema of the test file
format and runs test files outside of pytest.
"""

import asyncio
import logging
from json import dumps
from pathlib import Path
from typing import TYPE_CHECKING

from click import Path as PathParam
from click import argument, echo, group, option, pass_context

from pytest_blocks.core import DocumentParser, ExecutionEnvironment, TestRunner
from pytest_blocks.jsonschema import SchemaGenerator
from pytest_blocks.schema import Status
from pytest_blocks.settings import EngineSettings

if TYPE_CHECKING:
    from click import Context

InputFilepath = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)


@group(help='Command-line utilities for pytest-blocks.')
def cli() -> None:
    """Root CLI group for pytest-blocks tools."""
    return None


@cli.command(
    name='blocks',
    help='List registered blocks, including blocks of installed plugins.',
)
@option(
    '-c', '--category',
    default=None,
    help='Only list blocks of this category.',
)
def list_blocks(category: str | None) -> None:
    """Print one line per block: type, category and tooltip.

    Args:
        category: Category filter.
    """
    environment = ExecutionEnvironment.create()

    blocks = environment.blocks.all()
    if category is not None:
        blocks = environment.blocks.all_by_category(category)

    for block in sorted(blocks, key=lambda item: (item.category, item.type)):
        echo(f'{block.type}\t{block.category}\t{block.tooltip or ""}')


@cli.command(
    name='schema',
    help='Print the test file JSON Schema to standard output.',
)
def print_schema() -> None:
    """Generate and print the JSON Schema."""
    echo(SchemaGenerator.make_schema())


@cli.command(
    name='run',
    help='Run a test file and print the results as JSON.',
)
@option(
    '--soft',
    is_flag=True,
    default=None,
    help='Collect assertion failures instead of stopping at the first one.',
)
@option(
    '--strict',
    is_flag=True,
    default=None,
    help='Fail on plugin loading problems and block shadowing.',
)
@argument(
    'filename',
    type=InputFilepath,
)
@pass_context
def run_file(ctx: 'Context', filename: Path,
             soft: bool | None, strict: bool | None) -> None:
    """Run a test file.

    Exits with status 1 when any test case does not pass.

    Args:
        ctx: Click context.
        filename: Test file path.
        soft: Enable soft assertions.
        strict: Enable strict plugin loading.
    """
    overrides = {
        name: value
        for name, value in (('soft_assertions', soft), ('strict', strict))
        if value is not None
    }

    settings = EngineSettings(**overrides)
    logging.basicConfig(level=settings.log_level)

    test_file = DocumentParser().parse_file(filename)
    runner = TestRunner(ExecutionEnvironment.create(settings))

    results = asyncio.run(runner.run_file(test_file))

    echo(dumps(
        [result.model_dump() for result in results],
        ensure_ascii=False,
        indent=2,
        default=str,
    ))

    if any(result.status not in {Status.PASSED, Status.SKIPPED} for result in results):
        ctx.exit(1)


if __name__ == '__main__':
    cli()
