"""Execution environment.

An environment owns everything a run needs besides its own mutable state:
the block registry, the procedure registry, loaded plugins and their hooks,
and collaborator hooks such as the failure artifact producer. There is no
process-wide registry; independent environments (or scoped views of one)
never see each other's registrations.
"""

import logging
from typing import TYPE_CHECKING, Any

from pytest_blocks.context import ExecutionContext
from pytest_blocks.settings import EngineSettings

from .interpreter import StepInterpreter
from .loader import PluginLoaderMixin
from .procedures import ProcedureRegistry
from .registry import BlockRegistry

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Mapping
    from typing import Self

if TYPE_CHECKING:
    from pytest_blocks.extensions import Plugin
    from pytest_blocks.schema import BlockDescriptor, DataRow, ProcedureDefinition

    from .interpreter import ArtifactHook

logger = logging.getLogger(__name__)


class ExecutionEnvironment(PluginLoaderMixin):
    """Registries, plugins and collaborators shared by test runs.

    Attributes:
        settings: Engine settings.
        blocks: Block registry.
        procedures: Procedure registry.
        plugins: Loaded plugins, by name.
        hooks: Hooks of the loaded plugins.
        artifact_hook: Collaborator producing failure artifacts.
    """

    def __init__(self, settings: EngineSettings | None = None, *,
                 blocks: BlockRegistry | None = None,
                 procedures: ProcedureRegistry | None = None,
                 artifact_hook: 'ArtifactHook | None' = None) -> None:
        """Initialize an empty environment.

        Args:
            settings: Engine settings; resolved from the process
                environment by default.
            blocks: Block registry; an empty one by default.
            procedures: Procedure registry; an empty one by default.
            artifact_hook: Collaborator producing failure artifacts.
        """
        self.settings = settings if settings is not None else EngineSettings()
        self.strict_mode = self.settings.strict
        self.plugins_group = self.settings.plugins_group

        self.blocks = blocks if blocks is not None else BlockRegistry()
        self.procedures = procedures if procedures is not None else ProcedureRegistry()
        self.artifact_hook = artifact_hook

        self.clear_plugins()

    @classmethod
    def create(cls, settings: EngineSettings | None = None, *,
               load_plugins: bool | None = None,
               artifact_hook: 'ArtifactHook | None' = None) -> 'Self':
        """Create an environment with the builtin blocks and plugins.

        Args:
            settings: Engine settings.
            load_plugins: Discover entry point plugins; follows the
                settings when `None`.
            artifact_hook: Collaborator producing failure artifacts.

        Returns:
            A ready to use environment.

        Raises:
            PluginError: If plugin loading fails in strict mode.
        """
        environment = cls(settings, artifact_hook=artifact_hook)
        logging.getLogger('pytest_blocks').setLevel(environment.settings.log_level)

        from pytest_blocks.builtins import data, lifecycle, logic, operators, procedures  # noqa: PLC0415

        for module in (logic, operators, procedures, data, lifecycle):
            environment.blocks.register_many(module.blocks)

        if load_plugins is None:
            load_plugins = environment.settings.load_plugins

        if load_plugins:
            environment.load_plugins()

        logger.debug('Environment ready with %d block(s) and %d plugin(s)',
                     len(environment.blocks), len(environment.plugins))

        return environment

    def register_block(self, block: 'BlockDescriptor') -> None:
        """Register a block, reporting shadowing like plugin loading does."""
        self.add_block(block)

    def register_plugin(self, plugin: 'Plugin') -> None:
        """Register the blocks and the hooks of a plugin."""
        self.add_plugin(plugin)

    def define_procedure(self, name: str, definition: 'ProcedureDefinition') -> None:
        """Insert or overwrite a procedure by name."""
        self.procedures.define(name, definition)

    def clear_procedures(self) -> None:
        """Remove every procedure."""
        self.procedures.clear()

    def scoped(self) -> 'ExecutionEnvironment':
        """Return an isolated view of this environment.

        Blocks and procedures registered in the view stay local to it;
        definitions of this environment stay visible. Plugins and hooks
        are shared.
        """
        scope = ExecutionEnvironment(
            self.settings,
            blocks=self.blocks.child(),
            procedures=self.procedures.child(),
            artifact_hook=self.artifact_hook,
        )
        scope.plugins = dict(self.plugins)
        scope.hooks = list(self.hooks)

        return scope

    def interpreter(self) -> StepInterpreter:
        """Return an interpreter bound to this environment."""
        return StepInterpreter(
            self.blocks,
            hooks=self.hooks,
            artifact_hook=self.artifact_hook,
        )

    def new_context(self, *,  # noqa: PLR0913
                    variables: 'Mapping[str, Any] | None' = None,
                    current_data: 'DataRow | None' = None,
                    data_index: int | None = None,
                    soft_assertions: bool | None = None,
                    resources: 'Mapping[str, Any] | None' = None,
                    test_name: str | None = None,
                    cancel: 'asyncio.Event | None' = None) -> ExecutionContext:
        """Create an execution context using the procedures of the environment.

        Args:
            variables: Initial variable bindings.
            current_data: Data row of a data-driven iteration.
            data_index: Position of the data row.
            soft_assertions: Soft mode; follows the settings when `None`.
            resources: Collaborator handles made available to blocks.
            test_name: Name of the running test.
            cancel: Shared cancellation signal.

        Returns:
            A new execution context.
        """
        if soft_assertions is None:
            soft_assertions = self.settings.soft_assertions

        return ExecutionContext(
            procedures=self.procedures,
            variables=variables,
            current_data=current_data,
            data_index=data_index,
            soft_assertions=soft_assertions,
            resources=resources,
            test_name=test_name,
            cancel=cancel,
        )
