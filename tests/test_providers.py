"""Tests for plugin loading and execution."""

import asyncio
from typing import TYPE_CHECKING

import pydantic
import pytest

from pytest_blocks.core import ExecutionEnvironment
from pytest_blocks.errors import PluginError, PluginWarning
from pytest_blocks.extensions import Plugin, create_value_block
from pytest_blocks.schema import StepNode
from tests.examples import plugins
from tests.examples.plugins import example

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_mock import MockType

    from pytest_blocks.settings import EngineSettings


@pytest.fixture
def strict(settings: 'EngineSettings') -> 'EngineSettings':
    """Provide settings with strict plugin loading."""
    return settings.model_copy(update={'strict': True})


def test_base_loading(patch_entrypoints: 'Callable[..., MockType]',
                      settings: 'EngineSettings') -> None:
    """Register blocks and hooks of plugins found via entrypoints."""
    patch_entrypoints(example)

    environment = ExecutionEnvironment.create(settings)

    assert list(environment.plugins) == ['example']
    assert environment.blocks.require('example_fetch').snapshot_on_failure
    assert [block.type for block in environment.blocks.all_by_category('Example')] == [
        'example_echo', 'example_fetch', 'example_assert_equals',
    ]

    plugins.seen_steps.clear()
    context = environment.new_context()
    result = asyncio.run(environment.interpreter().run_step(
        StepNode(id='echo', type='example_assert_equals', params={'EXPECTED': 1, 'ACTUAL': 1}),
        context,
    ))

    assert result.passed
    assert result.output is True
    assert plugins.seen_steps == ['echo']


def test_loading_with_empty_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                       settings: 'EngineSettings') -> None:
    """Accept plugins providing no blocks."""
    patch_entrypoints(Plugin(name='empty'))

    builtin = len(ExecutionEnvironment.create(settings, load_plugins=False).blocks)
    environment = ExecutionEnvironment.create(settings)

    assert 'empty' in environment.plugins
    assert len(environment.blocks) == builtin


def test_loading_disabled(patch_entrypoints: 'Callable[..., MockType]',
                          settings: 'EngineSettings') -> None:
    """Never look entrypoints up when plugin loading is disabled."""
    entry_points = patch_entrypoints(example)

    environment = ExecutionEnvironment.create(settings.model_copy(update={'load_plugins': False}))

    assert environment.plugins == {}
    assert 'example_echo' not in environment.blocks
    entry_points.assert_not_called()


def test_loading_skip_with_failed_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                             settings: 'EngineSettings') -> None:
    """Skip plugins that fail during loading."""
    patch_entrypoints(None, raises=SyntaxError)
    with pytest.warns(PluginWarning, match=r'^Failed to load entrypoint'):
        environment = ExecutionEnvironment.create(settings)

    assert environment.plugins == {}


def test_loading_fail_with_failed_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                             strict: 'EngineSettings') -> None:
    """Fail on plugins that fail during loading with strict mode."""
    patch_entrypoints(None, raises=SyntaxError)
    with pytest.raises(PluginError, match=r'^Failed to load entrypoint'):
        ExecutionEnvironment.create(strict)


def test_loading_skip_with_not_valid_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                                settings: 'EngineSettings') -> None:
    """Skip plugins that fail validation during loading."""
    try:
        pydantic.TypeAdapter(int).validate_python('error')
    except pydantic.ValidationError as exception:
        error = exception

    patch_entrypoints(None, raises=error)
    with pytest.warns(PluginWarning, match=r'^Failed to validate entrypoint'):
        ExecutionEnvironment.create(settings)


def test_loading_fail_with_not_valid_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                                strict: 'EngineSettings') -> None:
    """Fail on plugins that fail validation during loading with strict mode."""
    try:
        pydantic.TypeAdapter(int).validate_python('error')
    except pydantic.ValidationError as exception:
        error = exception

    patch_entrypoints(None, raises=error)
    with pytest.raises(PluginError, match=r'^Failed to validate entrypoint'):
        ExecutionEnvironment.create(strict)


def test_loading_skip_with_invalid_provider(patch_entrypoints: 'Callable[..., MockType]',
                                            settings: 'EngineSettings') -> None:
    """Skip entrypoints that do not provide a plugin."""
    patch_entrypoints({})
    with pytest.warns(PluginWarning, match=r'object is not a plugin$'):
        ExecutionEnvironment.create(settings)


def test_loading_fail_with_invalid_provider(patch_entrypoints: 'Callable[..., MockType]',
                                            strict: 'EngineSettings') -> None:
    """Fail on entrypoints that do not provide a plugin with strict mode."""
    patch_entrypoints({})
    with pytest.raises(PluginError, match=r'object is not a plugin$'):
        ExecutionEnvironment.create(strict)


def test_block_shadowing(patch_entrypoints: 'Callable[..., MockType]',
                         settings: 'EngineSettings') -> None:
    """Override existing blocks with a warning."""
    patch_entrypoints(Plugin(
        name='shadow',
        blocks=[create_value_block('logic_text', lambda params, context: 'shadowed')],
    ))

    with pytest.warns(PluginWarning, match=r"^Block 'logic_text' from 'tests.plugins:test' is shadowing"):
        environment = ExecutionEnvironment.create(settings)

    value = asyncio.run(environment.interpreter().evaluate(
        StepNode(type='logic_text', params={'TEXT': 'original'}),
        environment.new_context(),
    ))

    assert value == 'shadowed'


def test_block_shadowing_strict(patch_entrypoints: 'Callable[..., MockType]',
                                strict: 'EngineSettings') -> None:
    """Refuse to override existing blocks with strict mode."""
    patch_entrypoints(Plugin(
        name='shadow',
        blocks=[create_value_block('logic_text', lambda params, context: 'shadowed')],
    ))

    with pytest.raises(PluginError, match=r"^Block 'logic_text' .+ is shadowing an existing"):
        ExecutionEnvironment.create(strict)


def test_duplicate_plugin(patch_entrypoints: 'Callable[..., MockType]',
                          settings: 'EngineSettings') -> None:
    """Warn when a plugin with the same name is registered twice."""
    patch_entrypoints(Plugin(name='twice'), Plugin(name='twice'))

    with pytest.warns(PluginWarning, match=r"^Plugin 'twice' is already loaded"):
        environment = ExecutionEnvironment.create(settings)

    assert len(environment.hooks) == 2


def test_scoped_environment(settings: 'EngineSettings') -> None:
    """Keep registrations of a scoped view local to it."""
    environment = ExecutionEnvironment.create(settings, load_plugins=False)
    environment.register_plugin(example)

    scope = environment.scoped()
    scope.register_block(create_value_block('local_block', lambda params, context: None))

    assert 'local_block' in scope.blocks
    assert 'local_block' not in environment.blocks
    assert 'example_echo' in scope.blocks
    assert scope.hooks == environment.hooks
    assert scope.hooks is not environment.hooks
