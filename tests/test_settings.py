"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ragchat.services.settings import (
    Settings,
    SettingsStore,
    build_client_settings,
    build_completions_config,
    redact_secret,
)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = Settings(
        base_url="https://example.com/v1",
        model="gpt-4o",
        temperature=0.3,
        organization="acme",
        system_role="Answer tersely",
        max_messages_length=64,
        max_tool_rounds=4,
        default_headers={"X-Test": "1"},
        metadata={"env": "dev"},
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original


def test_api_key_is_never_written_to_disk(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"

    SettingsStore(path).save(Settings(api_key="super-secret"))

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert "api_key" not in payload
    assert payload["version"] == 1
    assert SettingsStore(path).load().api_key == ""


def test_api_key_in_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"api_key": "leaked", "model": "gpt-4o"}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.api_key == ""
    assert settings.model == "gpt-4o"


def test_env_overrides_take_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(model="gpt-4o", max_tool_rounds=2))
    monkeypatch.setenv("RAGCHAT_MODEL", "gpt-4-turbo")
    monkeypatch.setenv("RAGCHAT_MAX_TOOL_ROUNDS", "5")
    monkeypatch.setenv("RAGCHAT_TEMPERATURE", "0.7")
    monkeypatch.setenv("RAGCHAT_DEBUG_LOGGING", "yes")

    settings = SettingsStore(path).load()

    assert settings.model == "gpt-4-turbo"
    assert settings.max_tool_rounds == 5
    assert settings.temperature == 0.7
    assert settings.debug_logging is True


def test_invalid_numeric_env_override_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RAGCHAT_MAX_MESSAGES_LENGTH", "lots")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.max_messages_length == 2048


def test_openai_api_key_is_used_as_fallback(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")

    assert SettingsStore(tmp_path / "settings.json").load().api_key == "sk-fallback"

    monkeypatch.setenv("RAGCHAT_API_KEY", "sk-explicit")
    assert SettingsStore(tmp_path / "settings.json").load().api_key == "sk-explicit"


def test_cli_overrides_apply_before_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    monkeypatch.setenv("RAGCHAT_MODEL", "from-env")

    settings = store.load(overrides={"model": "from-cli", "max_retry_attempts": 1, "unknown": True})

    assert settings.model == "from-env"
    assert settings.max_retry_attempts == 1


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_non_object_payload_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("[1, 2]", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_builders_translate_settings() -> None:
    settings = Settings(
        api_key="",
        model="gpt-4o",
        temperature=0.4,
        system_role="sys",
        max_messages_length=12,
        max_tool_rounds=3,
        max_retry_attempts=2,
        metadata={"env": "dev"},
    )

    client_settings = build_client_settings(settings)
    config = build_completions_config(settings)

    assert client_settings.api_key is None
    assert client_settings.model == "gpt-4o"
    assert client_settings.default_headers is None
    assert client_settings.metadata == {"env": "dev"}
    assert (config.model, config.system_role, config.temperature) == ("gpt-4o", "sys", 0.4)
    assert (config.max_messages_length, config.max_tool_rounds, config.max_retry_attempts) == (12, 3, 2)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, ""), ("", ""), ("short", "*****"), ("sk-1234567890", "sk-1…7890")],
)
def test_redact_secret(value: str | None, expected: str) -> None:
    assert redact_secret(value) == expected
