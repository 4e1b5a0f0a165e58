"""Unit tests for etrans.config module."""
import json

import pytest

import etrans.config as config_module
from etrans.config import DEFAULTS, ProviderConfig, load_config, provider_config_from, save_config


@pytest.fixture
def temp_config_path(tmp_path, monkeypatch):
    """Mock CONFIG_PATH to use a temporary directory."""
    config_path = tmp_path / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_PATH", config_path)
    return config_path


@pytest.fixture
def no_key_env(monkeypatch):
    monkeypatch.delenv("ETRANS_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def test_load_config_returns_defaults_when_no_file_exists(temp_config_path):
    assert not temp_config_path.exists()
    assert load_config() == DEFAULTS


def test_load_config_merges_saved_values_with_defaults(temp_config_path):
    with open(temp_config_path, "w") as f:
        json.dump({"provider": "deepseek", "target_lang": "ko"}, f)

    config = load_config()

    # Saved values override defaults
    assert config["provider"] == "deepseek"
    assert config["target_lang"] == "ko"

    # Unset keys use defaults
    assert config["mode"] == DEFAULTS["mode"]
    assert config["temperature"] == DEFAULTS["temperature"]
    assert config["cache_dir"] == DEFAULTS["cache_dir"]


def test_save_config_creates_parent_directories(tmp_path, monkeypatch):
    config_path = tmp_path / "nested" / "dir" / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_PATH", config_path)

    save_config({"provider": "openai"})

    assert config_path.exists()


def test_save_then_load_config_round_trip(temp_config_path):
    original_config = {
        "provider": "ollama",
        "api_url": "http://localhost:11434/v1",
        "model": "llama3",
        "target_lang": "ja",
        "mode": "monolingual",
        "instruction": "Keep honorifics.",
    }

    save_config(original_config)
    loaded_config = load_config()

    for key in original_config:
        assert loaded_config[key] == original_config[key]


def test_load_config_handles_corrupt_json_gracefully(temp_config_path):
    temp_config_path.write_text("{ invalid json }")
    assert load_config() == DEFAULTS


@pytest.mark.parametrize("content", ["[1, 2]", "null", '"openai"'])
def test_load_config_ignores_non_object_json(temp_config_path, content):
    temp_config_path.write_text(content)
    assert load_config() == DEFAULTS


def test_save_config_preserves_unicode(temp_config_path):
    save_config({"instruction": "존댓말을 사용하세요"})
    assert "존댓말을 사용하세요" in temp_config_path.read_text(encoding="utf-8")


class TestProviderConfigFrom:
    """Building a ProviderConfig from saved settings and CLI overrides."""

    def test_defaults(self, no_key_env):
        provider = provider_config_from(DEFAULTS)
        assert provider == ProviderConfig(
            type="openai",
            api_key="",
            api_url="https://api.openai.com/v1",
            model="gpt-3.5-turbo",
            temperature=0.3,
            max_tokens=None,
            extra={},
        )

    def test_overrides_win(self, no_key_env):
        config = dict(DEFAULTS, api_key="saved-key")
        provider = provider_config_from(
            config, provider="deepseek", api_key="cli-key", api_url="https://api.deepseek.com", model="deepseek-chat"
        )
        assert provider.type == "deepseek"
        assert provider.api_key == "cli-key"
        assert provider.api_url == "https://api.deepseek.com"
        assert provider.model == "deepseek-chat"

    def test_none_overrides_are_ignored(self, no_key_env):
        config = dict(DEFAULTS, model="gpt-4o")
        assert provider_config_from(config, model=None).model == "gpt-4o"

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.delenv("ETRANS_API_KEY", raising=False)
        monkeypatch.setenv("OPENAI_API_KEY", "openai-env")
        assert provider_config_from(DEFAULTS).api_key == "openai-env"

        monkeypatch.setenv("ETRANS_API_KEY", "etrans-env")
        assert provider_config_from(DEFAULTS).api_key == "etrans-env"

    def test_saved_key_beats_environment(self, monkeypatch):
        monkeypatch.setenv("ETRANS_API_KEY", "env")
        assert provider_config_from(dict(DEFAULTS, api_key="saved")).api_key == "saved"
