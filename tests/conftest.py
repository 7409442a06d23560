"""Tests configurations and fixtures."""

import asyncio
from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest
import yaml

from pytest_blocks.core import ExecutionEnvironment
from pytest_blocks.schema import StepNode
from pytest_blocks.settings import EngineSettings

pytest_plugins = ['pytester']

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from typing import Any

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType

if TYPE_CHECKING:
    from pytest_blocks.context import ExecutionContext
    from pytest_blocks.extensions import Plugin
    from pytest_blocks.schema import StepResult


@pytest.fixture
def loader() -> type[yaml.SafeLoader]:
    """Provide an isolated YAML SafeLoader class for tests.

    Returns:
        A subclass of `yaml.SafeLoader` private to the test.
    """
    class Loader(yaml.SafeLoader):
        pass

    return Loader


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of plugins in the `blocks_plugins` entry point group.
    """
    def patch(*plugins: 'Plugin', raises: Exception | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled plugin configuration.

        Args:
            plugins: Plugin objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.

        Returns:
            The mock replacing `importlib.metadata.entry_points`.
        """
        entrypoints = []
        for plugin in plugins:
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'blocks_plugins'
            ep.name = 'tests'
            ep.value = 'tests.plugins:test'
            ep.load.return_value = plugin
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> EngineSettings:
    """Provide default settings, isolated from `BLOCKS_*` variables."""
    for name in ('STRICT', 'SOFT_ASSERTIONS', 'LOG_LEVEL', 'LOAD_PLUGINS', 'PLUGINS_GROUP'):
        monkeypatch.delenv(f'BLOCKS_{name}', raising=False)

    return EngineSettings()


@pytest.fixture
def environment(settings: EngineSettings) -> ExecutionEnvironment:
    """Provide an environment with the builtin blocks and no plugins."""
    return ExecutionEnvironment.create(settings, load_plugins=False)


@pytest.fixture
def context(environment: ExecutionEnvironment) -> 'ExecutionContext':
    """Provide a fresh hard-assertion context of the environment."""
    return environment.new_context(test_name='test')


@pytest.fixture
def run_steps(environment: ExecutionEnvironment) -> 'Callable[..., list[StepResult]]':
    """Provide a synchronous helper running step trees given as mappings."""
    def run(steps: 'Iterable[Mapping[str, Any]]', context: 'ExecutionContext') -> 'list[StepResult]':
        nodes = [StepNode.model_validate(step) for step in steps]
        return asyncio.run(environment.interpreter().run_steps(nodes, context))

    return run
