"""Unit tests for the configuration merge order and typed settings."""

from __future__ import annotations

import json

import pytest

from toolbridge.config import BridgeSettings, get_bridge_config, reset_config_cache
from toolbridge.config.defaults import (
    BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE,
    SERVICE_DEFAULT_PORT,
)
from toolbridge.config.env import env_var_names, is_placeholder, read_env_field


def test_defaults_when_nothing_configured():
    cfg = get_bridge_config()
    assert cfg["max_tool_call_buffer_size"] == BRIDGE_DEFAULT_MAX_TOOL_CALL_BUFFER_SIZE  # nosec B101
    assert cfg["port"] == SERVICE_DEFAULT_PORT  # nosec B101
    assert cfg["backend_format"] == "openai"  # nosec B101


def test_json_file_then_env_then_overrides(monkeypatch, tmp_path):
    cfg_file = tmp_path / "toolbridge.json"
    cfg_file.write_text(json.dumps({"backend_format": "ollama", "port": 9000, "unknown": 1}), encoding="utf-8")
    monkeypatch.setenv("TOOLBRIDGE_CONFIG_FILE", str(cfg_file))
    monkeypatch.setenv("TOOLBRIDGE_PORT", "9100")
    reset_config_cache()

    cfg = get_bridge_config({"host": "0.0.0.0", "queue_maxsize": None})
    assert cfg["backend_format"] == "ollama"  # nosec B101
    assert cfg["port"] == "9100"  # nosec B101 - env values stay strings until typed
    assert cfg["host"] == "0.0.0.0"  # nosec B101
    assert "unknown" not in cfg  # nosec B101
    assert cfg["queue_maxsize"] is not None  # nosec B101


def test_yaml_file_with_section(monkeypatch, tmp_path):
    cfg_file = tmp_path / "toolbridge.yaml"
    cfg_file.write_text(
        "toolbridge:\n  backend_format: ollama\n  max_tool_call_buffer_size: 2048\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("TOOLBRIDGE_CONFIG_FILE", str(cfg_file))
    reset_config_cache()
    settings = BridgeSettings.from_config()
    assert settings.backend_format == "ollama"  # nosec B101
    assert settings.max_tool_call_buffer_size == 2048  # nosec B101
    assert settings.backend_chat_path == "/api/chat"  # nosec B101


def test_dotenv_loaded_once(monkeypatch, tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("# comment\nTOOLBRIDGE_HOST=10.0.0.5\nexport TOOLBRIDGE_SINK_MAXSIZE='8'\n", encoding="utf-8")
    monkeypatch.setenv("DOTENV_FILE", str(dotenv))
    monkeypatch.delenv("TOOLBRIDGE_HOST", raising=False)
    monkeypatch.delenv("TOOLBRIDGE_SINK_MAXSIZE", raising=False)
    reset_config_cache()
    settings = BridgeSettings.from_config()
    assert settings.host == "10.0.0.5"  # nosec B101
    assert settings.sink_maxsize == 8  # nosec B101


def test_settings_typing_and_cors(monkeypatch):
    monkeypatch.setenv("TOOLBRIDGE_CORS_ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.setenv("TOOLBRIDGE_BACKEND_BASE_URL", "http://backend.test/v1/")
    settings = BridgeSettings.from_config({"port": "8123"})
    assert settings.port == 8123  # nosec B101
    assert settings.cors_origins == ("http://a.test", "http://b.test")  # nosec B101
    assert settings.backend_url == "http://backend.test/v1/chat/completions"  # nosec B101
    assert settings.as_dict()["port"] == 8123  # nosec B101


def test_settings_reject_bad_values():
    with pytest.raises(ValueError):
        BridgeSettings.from_config({"backend_format": "grpc"})
    with pytest.raises(ValueError):
        BridgeSettings.from_config({"max_tool_call_buffer_size": "lots"})
    with pytest.raises(ValueError):
        BridgeSettings.from_config({"queue_maxsize": 0})


def test_api_key_alias_and_placeholder(monkeypatch):
    monkeypatch.delenv("TOOLBRIDGE_BACKEND_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-real")
    assert read_env_field("backend_api_key") == "sk-real"  # nosec B101
    assert env_var_names("backend_api_key") == ("TOOLBRIDGE_BACKEND_API_KEY", "OPENAI_API_KEY")  # nosec B101
    monkeypatch.setenv("TOOLBRIDGE_BACKEND_API_KEY", "changeme")
    assert BridgeSettings.from_config().backend_api_key is None  # nosec B101


def test_is_placeholder_heuristics():
    assert is_placeholder("placeholder-value")  # nosec B101
    assert is_placeholder("ChangeMe123")  # nosec B101
    assert is_placeholder("test_token")  # nosec B101
    assert not is_placeholder("real-value")  # nosec B101
    assert not is_placeholder(None)  # nosec B101


def test_reinjection_settings_from_env(monkeypatch):
    monkeypatch.setenv("TOOLBRIDGE_ENABLE_REINJECTION", "off")
    monkeypatch.setenv("TOOLBRIDGE_REINJECTION_MESSAGE_COUNT", "7")
    monkeypatch.setenv("TOOLBRIDGE_REINJECTION_ROLE", "User")
    settings = BridgeSettings.from_config()
    assert settings.enable_reinjection is False  # nosec B101
    assert settings.reinjection_message_count == 7  # nosec B101
    assert settings.reinjection_token_count == 1000  # nosec B101
    assert settings.reinjection_role == "user"  # nosec B101


@pytest.mark.parametrize(
    "overrides",
    [{"enable_reinjection": "sometimes"}, {"reinjection_role": "assistant"}, {"reinjection_token_count": 0}],
)
def test_invalid_reinjection_settings_rejected(overrides):
    with pytest.raises(ValueError):
        BridgeSettings.from_config(overrides)
