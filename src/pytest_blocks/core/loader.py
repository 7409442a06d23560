"""Plugin discovery and block registration.

This module defines a mixin responsible for discovering block plugins
exposed via Python entry points and registering their blocks and hooks.

Plugins are loaded defensively: individual failures do not interrupt
the loading process unless strict mode is enabled. A block registered
under a type that is already known overrides the existing block; the
shadowing is reported as a warning, or as an error in strict mode.
"""

from typing import TYPE_CHECKING
from warnings import warn

from pydantic import ValidationError

from pytest_blocks.errors import PluginError, PluginWarning
from pytest_blocks.extensions import Plugin
from pytest_blocks.settings import PLUGINS_GROUP

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

if TYPE_CHECKING:
    from pytest_blocks.core.registry import BlockRegistry
    from pytest_blocks.extensions import PluginHooks
    from pytest_blocks.schema import BlockDescriptor


class PluginLoaderMixin:
    """Mixin defining plugin loading behavior.

    Implementers provide a `blocks` registry; the mixin maintains the
    loaded plugins and their hooks.

    Attributes:
        strict_mode: If True, any plugin loading issue raises an error.
            If False, issues are emitted as warnings and loading continues.
        plugins_group: Entry point group scanned for plugins.
    """

    strict_mode: bool = False
    plugins_group: str = PLUGINS_GROUP

    blocks: 'BlockRegistry'
    plugins: dict[str, Plugin]
    hooks: list['PluginHooks']

    def add_block(self, block: 'BlockDescriptor',
                  entrypoint: 'EntryPoint | None' = None) -> None:
        """Register a block descriptor.

        Args:
            block: Block descriptor.
            entrypoint: Entry point the block was loaded from, if any.
                Used for diagnostics.

        Raises:
            PluginError: If the block shadows an existing one in strict mode.
        """
        module = self.resolve_plugin_module(block, entrypoint)

        if block.type in self.blocks and (error := self.emit_plugin_issue(
            f'Block {block.type!r} from {module!r} is shadowing an existing',
            entrypoint,
        )):
            raise error

        self.blocks.register(block)

    def add_plugin(self, plugin: Plugin,
                   entrypoint: 'EntryPoint | None' = None) -> None:
        """Register every block and the hooks of a plugin.

        Args:
            plugin: Plugin definition.
            entrypoint: Entry point the plugin was loaded from, if any.

        Raises:
            PluginError: On naming conflicts in strict mode.
        """
        if plugin.name in self.plugins and (error := self.emit_plugin_issue(
            f'Plugin {plugin.name!r} is already loaded',
            entrypoint,
        )):
            raise error

        for block in plugin.blocks:
            self.add_block(block, entrypoint)

        self.plugins[plugin.name] = plugin
        self.hooks.append(plugin.hooks)

    @staticmethod
    def resolve_plugin_module(item: object,
                              entrypoint: 'EntryPoint | None' = None) -> str:
        """Resolve the display name of the module providing a definition."""
        if entrypoint is not None:
            return f'{entrypoint.value}'

        executor = getattr(item, 'executor', None)

        return f'{getattr(executor, '__module__', None) or type(item).__module__}'

    def emit_plugin_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a plugin warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point involved, if any.

        Returns:
            PluginError on strict mode, otherwise `None`
                after producing a PluginWarning.
        """
        if self.strict_mode:
            return PluginError(message, entrypoint=entrypoint)

        warn(message, category=PluginWarning, stacklevel=2)

        return None

    def _load_plugin(self, entrypoint: 'EntryPoint') -> None:
        """Load and register a single plugin entry point.

        Args:
            entrypoint: Entry point describing the plugin to load.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        try:
            plugin = entrypoint.load()

        except ValidationError as base:
            if error := self.emit_plugin_issue(
                f'Failed to validate entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        except Exception as base:
            if error := self.emit_plugin_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        if not isinstance(plugin, Plugin):
            if error := self.emit_plugin_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object is not a plugin',
                entrypoint,
            ):
                raise error
            return None

        self.add_plugin(plugin, entrypoint)

    def clear_plugins(self) -> None:
        """Forget all loaded plugins and their hooks."""
        self.plugins = {}
        self.hooks = []

    def load_plugins(self) -> None:
        """Load plugins via entry points and register their extensions.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=self.plugins_group):
            self._load_plugin(entrypoint)
