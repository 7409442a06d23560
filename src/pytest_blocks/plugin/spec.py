"""Pytest file collector for block test files.

Each collected file is parsed with the configured `DocumentParser` and
expanded into `TestCase` items: one per test case, or one per data row of
a data-driven test case.

The collector owns the file session. Its `setup` runs the file `before_all`
phase and its `teardown` the `after_all` phase, so pytest orders them around
the items of the file. All phases share one event loop.
"""

import asyncio
from typing import TYPE_CHECKING

import pytest

from pytest_blocks.core import TestRunner

from .case import TestCase, format_failure

if TYPE_CHECKING:
    from collections.abc import Iterable

if TYPE_CHECKING:
    from pytest_blocks.core import FileSession


class TestSpec(pytest.File):
    """Pytest file collector for block test files."""

    __test__ = False

    session_: 'FileSession | None' = None
    loop: asyncio.Runner | None = None

    def collect(self) -> 'Iterable[TestCase]':
        """Collect pytest test cases from a block test file.

        Returns:
            Iterable of `TestCase` instances for pytest execution.

        Raises:
            BlockSchemaError: If the file is malformed.
        """
        test_file = self.config.blocks_parser.parse_file(self.path)  # type: ignore[attr-defined]
        runner = TestRunner(self.config.blocks_environment)  # type: ignore[attr-defined]

        self.session_ = runner.session(test_file)

        for test, data_index in self.session_.cases():
            yield TestCase.from_parent(
                self,
                name=self.session_.item_name(test, data_index),
                test=test,
                data_index=data_index,
            )

    def setup(self) -> None:
        """Open the event loop and run the `before_all` phase."""
        self.loop = asyncio.Runner()
        if self.session_ is not None:
            self.loop.run(self.session_.before_all())

    def teardown(self) -> None:
        """Run the `after_all` phase and close the event loop.

        Raises:
            AssertionError: If the `after_all` phase fails.
        """
        if self.loop is None:
            return

        try:
            result = None
            if self.session_ is not None:
                result = self.loop.run(self.session_.after_all())
        finally:
            self.loop.close()
            self.loop = None

        if result is not None:
            raise AssertionError(format_failure(result, filename=f'{self.path}'))
