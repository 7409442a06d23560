"""Tests for engine settings."""

import logging

import pydantic
import pytest

from pytest_blocks.core import ExecutionEnvironment
from pytest_blocks.settings import PLUGINS_GROUP, EngineSettings


def test_defaults(settings: EngineSettings) -> None:
    """Use hard assertions and warnings by default."""
    assert settings.strict is False
    assert settings.soft_assertions is False
    assert settings.log_level == 'INFO'
    assert settings.load_plugins is True
    assert settings.plugins_group == PLUGINS_GROUP


def test_environment_variables(settings: EngineSettings,
                               monkeypatch: pytest.MonkeyPatch) -> None:
    """Read settings from prefixed environment variables."""
    monkeypatch.setenv('BLOCKS_STRICT', '1')
    monkeypatch.setenv('BLOCKS_SOFT_ASSERTIONS', 'true')
    monkeypatch.setenv('BLOCKS_LOG_LEVEL', 'DEBUG')
    monkeypatch.setenv('BLOCKS_UNRELATED', 'ignored')

    configured = EngineSettings()

    assert configured.strict is True
    assert configured.soft_assertions is True
    assert configured.log_level == 'DEBUG'


def test_invalid_log_level(settings: EngineSettings,
                           monkeypatch: pytest.MonkeyPatch) -> None:
    """Reject unknown log levels."""
    monkeypatch.setenv('BLOCKS_LOG_LEVEL', 'LOUD')

    with pytest.raises(pydantic.ValidationError):
        EngineSettings()


def test_frozen(settings: EngineSettings) -> None:
    """Refuse to modify resolved settings."""
    with pytest.raises(pydantic.ValidationError, match=r'Instance is frozen'):
        settings.strict = True


def test_log_level_applied(settings: EngineSettings) -> None:
    """Apply the configured level to the engine loggers."""
    logger = logging.getLogger('pytest_blocks')
    previous = logger.level

    try:
        ExecutionEnvironment.create(settings.model_copy(update={'log_level': 'WARNING'}),
                                    load_plugins=False)
        assert logger.level == logging.WARNING
    finally:
        logger.setLevel(previous)
