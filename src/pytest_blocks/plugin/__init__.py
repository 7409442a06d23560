"""Pytest plugin for collecting and executing block test files.

This module integrates the `pytest-blocks` engine with pytest by:
- registering custom command-line options;
- configuring a shared execution environment and document parser;
- collecting YAML test files as executable test specifications.

Files matching the pattern `test_*.blocks.yml` or `test_*.blocks.yaml`
are collected and expanded into one pytest item per test case and data row.
"""

from re import match
from typing import TYPE_CHECKING

from yaml import SafeLoader

from .spec import TestSpec

if TYPE_CHECKING:
    from pathlib import Path

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.config.argparsing import Parser
    from _pytest.nodes import Node


def pytest_addoption(parser: 'Parser') -> None:
    """Register pytest command-line options for pytest-blocks.

    Args:
        parser: Pytest argument parser.
    """
    parser.addoption(
        '--blocks-strict',
        action='store_true',
        dest='blocks_strict',
        default=None,
        help=(
            'Fail on third-party plugin loading errors and block shadowing '
            'instead of emitting warnings.'
        ),
    )
    parser.addoption(
        '--blocks-soft',
        action='store_true',
        dest='blocks_soft',
        default=None,
        help=(
            'Collect assertion failures and report them at the end of each '
            'test case unless the test case sets its own mode.'
        ),
    )


def pytest_configure(config: 'Config') -> None:
    """Configure pytest-blocks integration.

    This hook creates a shared `ExecutionEnvironment` and `DocumentParser`
    and attaches them to the pytest configuration object as
    `config.blocks_environment` and `config.blocks_parser`. Command-line
    options override the settings resolved from the process environment.

    Args:
        config: Pytest configuration object.
    """
    from pytest_blocks.core import DocumentParser, ExecutionEnvironment  # noqa: PLC0415
    from pytest_blocks.settings import EngineSettings  # noqa: PLC0415

    overrides = {
        name: value
        for name, value in (
            ('strict', config.getoption('--blocks-strict', default=None)),
            ('soft_assertions', config.getoption('--blocks-soft', default=None)),
        )
        if value is not None
    }

    config.blocks_environment = ExecutionEnvironment.create(  # type: ignore[attr-defined]
        EngineSettings(**overrides),
    )
    config.blocks_parser = DocumentParser(SafeLoader)  # type: ignore[attr-defined]


def pytest_collect_file(parent: 'Node', file_path: 'Path') -> TestSpec | None:
    """Collect block test files.

    Args:
        parent: Parent pytest collection node.
        file_path: Path to the file being considered.

    Returns:
        A `TestSpec` collector if the file matches the pattern, otherwise `None`.
    """
    if match(r'^test_.+\.blocks\.ya?ml$', file_path.name):
        return TestSpec.from_parent(
            parent,
            path=file_path,
        )

    return None
