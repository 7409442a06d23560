"""Declarative block plugin definition.

This module defines the top-level declarative container used to describe
extensions provided by a pytest-blocks plugin: block descriptors and
lifecycle hooks.

The plugin model itself contains no execution logic. It is consumed by the
plugin loader of an execution environment, which registers the blocks and
the hooks in a structured and validated form.
"""

from collections.abc import Callable
from typing import Any

from pydantic import Field

from pytest_blocks.models import SchemaModel
from pytest_blocks.names import Variable  # noqa: TC001
from pytest_blocks.schema import BlockDescriptor, BlockInput, BlockOutput

from .blocks import (
    create_action_block,
    create_assertion_block,
    create_block,
    create_value_block,
)

__all__ = (
    'BlockDescriptor',
    'BlockInput',
    'BlockOutput',
    'Hook',
    'Plugin',
    'PluginHooks',
    'create_action_block',
    'create_assertion_block',
    'create_block',
    'create_value_block',
)

#: Lifecycle hook callable. Receives keyword arguments describing the
#: event (`context`, `test`, `step`, `result`) and may be a coroutine.
type Hook = Callable[..., Any]


class PluginHooks(SchemaModel):
    """Lifecycle hooks contributed by a plugin.

    Every hook is optional. `before_all` / `after_all` run once per test
    file, `before_test` / `after_test` once per test case execution and
    `before_step` / `after_step` around every statement step.
    """

    before_all: Hook | None = None
    after_all: Hook | None = None
    before_test: Hook | None = None
    after_test: Hook | None = None
    before_step: Hook | None = None
    after_step: Hook | None = None


class Plugin(SchemaModel):
    """Declarative container for block plugin extensions.

    A plugin groups together the blocks contributed by an extension module.
    Block types may be plain (`api_get`) or qualified with the plugin name
    (`http.get`); a block registered under an existing type overrides it.
    """

    name: Variable = Field(
        title='Plugin name',
        description=(
            'Logical name of the plugin, used for identification '
            'and diagnostics.'
        ),
    )

    version: str = Field(
        default='1.0.0',
        title='Plugin version',
    )

    description: str | None = Field(
        default=None,
        title='Description',
    )

    blocks: list[BlockDescriptor] = Field(
        default_factory=list,
        title='Blocks',
        description='Block descriptors provided by the plugin.',
    )

    hooks: PluginHooks = Field(
        default_factory=PluginHooks,
        title='Hooks',
        description='Lifecycle hooks invoked by the runner and the interpreter.',
    )
