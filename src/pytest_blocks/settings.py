"""Runtime settings for the block engine.

Settings are resolved from environment variables prefixed with `BLOCKS_`
(for example, `BLOCKS_SOFT_ASSERTIONS=1`) and may be overridden by pytest
command-line options or explicit keyword arguments.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from pytest_blocks.models import SettingsModel

#: Entry point group scanned for third-party block plugins.
PLUGINS_GROUP = 'blocks_plugins'

type LogLevel = Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class EngineSettings(SettingsModel):
    """Configuration of an execution environment."""

    model_config = SettingsConfigDict(
        env_prefix='BLOCKS_',
        frozen=True,
        extra='ignore',
    )

    strict: bool = Field(
        default=False,
        title='Strict mode',
        description=(
            'Raise on plugin loading problems and block shadowing '
            'instead of emitting warnings.'
        ),
    )

    soft_assertions: bool = Field(
        default=False,
        title='Soft assertions',
        description=(
            'Collect assertion failures and report them together at the '
            'end of a test case unless the test case overrides it.'
        ),
    )

    log_level: LogLevel = Field(
        default='INFO',
        title='Log level',
        description='Level applied to the `pytest_blocks` logger hierarchy.',
    )

    load_plugins: bool = Field(
        default=True,
        title='Load plugins',
        description='Discover block plugins via entry points.',
    )

    plugins_group: str = Field(
        default=PLUGINS_GROUP,
        title='Plugins entry point group',
        description='Entry point group scanned for block plugins.',
    )
