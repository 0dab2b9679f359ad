"""
Tests for engine settings loading.
"""

from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from schemaforge.config.base import get_settings
from schemaforge.config.engine import EngineSettings
from schemaforge.validation.context import ValidationOptions


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        'LOAD_ENV_FILE',
        'SCHEMAFORGE_FORMAT_ASSERTION',
        'SCHEMAFORGE_DYNAMIC_SCOPE_ORDER',
        'SCHEMAFORGE_DISCRIMINATOR_PROPERTY',
        'SCHEMAFORGE_INCLUDE_SCHEMA_URI',
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = get_settings(EngineSettings)

    assert settings.FORMAT_ASSERTION is True
    assert settings.DYNAMIC_SCOPE_ORDER == 'innermost'
    assert settings.DISCRIMINATOR_PROPERTY == 'type'
    assert settings.INCLUDE_SCHEMA_URI is True


def test_environment_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('SCHEMAFORGE_FORMAT_ASSERTION', 'false')
    monkeypatch.setenv('SCHEMAFORGE_DISCRIMINATOR_PROPERTY', 'kind')

    settings = get_settings(EngineSettings)
    assert settings.FORMAT_ASSERTION is False
    assert settings.DISCRIMINATOR_PROPERTY == 'kind'


def test_env_file(tmp_path: Path) -> None:
    env_file = tmp_path / 'engine.env'
    env_file.write_text('SCHEMAFORGE_DYNAMIC_SCOPE_ORDER=outermost\nUNRELATED_TOOL_SETTING=1\n')

    settings = get_settings(EngineSettings, env_file=str(env_file))
    assert settings.DYNAMIC_SCOPE_ORDER == 'outermost'


def test_env_file_from_load_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / 'engine.env'
    env_file.write_text('SCHEMAFORGE_INCLUDE_SCHEMA_URI=false\n')
    monkeypatch.setenv('LOAD_ENV_FILE', str(env_file))

    assert get_settings(EngineSettings).INCLUDE_SCHEMA_URI is False


def test_missing_env_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError, match='Environment file not found'):
        get_settings(EngineSettings, env_file=str(tmp_path / 'missing.env'))


@pytest.mark.parametrize('value', ['', '   '], ids=['empty', 'blank'])
def test_blank_discriminator_property_is_rejected(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv('SCHEMAFORGE_DISCRIMINATOR_PROPERTY', value)
    with pytest.raises(pydantic.ValidationError):
        get_settings(EngineSettings)


def test_invalid_scope_order_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv('SCHEMAFORGE_DYNAMIC_SCOPE_ORDER', 'sideways')
    with pytest.raises(pydantic.ValidationError):
        get_settings(EngineSettings)


def test_validation_options_default_to_settings() -> None:
    options = ValidationOptions.from_settings()
    assert options == ValidationOptions()
