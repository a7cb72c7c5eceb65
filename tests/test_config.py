"""Tests for startup configuration and provider selection."""

import os

import pytest

from core.config import TOKEN_ENV, ConfigError, load_identity, load_settings
from core.providers import (
    KEYLESS_PLACEHOLDER,
    Provider,
    build_client,
    find_provider,
    load_providers,
    parse_model,
    resolve_api_key,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (TOKEN_ENV, "YAGI_MODEL", "YAGI_LANG", "LOG_LEVEL", "OPENAI_API_KEY", "OPENROUTER_API_KEY"):
        # setenv first so the original value is restored after the test
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestProviders:
    def test_parse_model(self):
        assert parse_model("openai/gpt-4.1-nano") == ("openai", "gpt-4.1-nano")
        assert parse_model("openrouter/meta-llama/llama-3") == ("openrouter", "meta-llama/llama-3")
        assert parse_model("gpt-4.1") is None
        assert parse_model("openai/") is None

    def test_shipped_providers(self):
        names = {provider.name for provider in load_providers()}
        assert {"openai", "openrouter", "gemini", "ollama"} <= names
        assert find_provider("openai").env_key == "OPENAI_API_KEY"
        assert find_provider("openai").base_url is None
        assert find_provider("nope") is None

    def test_api_key_resolution(self, monkeypatch):
        provider = Provider("openrouter", "https://openrouter.ai/api/v1", "OPENROUTER_API_KEY")
        monkeypatch.setenv("OPENROUTER_API_KEY", "from-env")
        assert resolve_api_key(provider) == "from-env"
        assert resolve_api_key(provider, "override") == "override"
        assert resolve_api_key(Provider("ollama", "http://localhost:11434/v1")) == KEYLESS_PLACEHOLDER

    def test_build_client_uses_base_url(self):
        client = build_client(Provider("ollama", "http://localhost:11434/v1"), "k")
        assert str(client.base_url).startswith("http://localhost:11434/v1")


class TestLoadSettings:
    def test_requires_token(self):
        with pytest.raises(ConfigError):
            load_settings([])

    def test_defaults(self, monkeypatch):
        monkeypatch.setenv(TOKEN_ENV, "secret")
        settings = load_settings([])
        assert settings.token == "secret"
        assert settings.provider.name == "openai"
        assert settings.model == "gpt-4.1-nano"
        assert settings.prefix == "!"
        assert settings.identity_path == settings.data_dir / "IDENTITY.md"
        assert os.environ[TOKEN_ENV] == ""

    def test_flags(self, tmp_path):
        settings = load_settings(
            [
                "--token", "t",
                "--model", "openrouter/meta-llama/llama-3",
                "--key", "k",
                "--prefix", "?",
                "--data", str(tmp_path / "data"),
                "--identity", str(tmp_path / "me.md"),
                "--lang", "en",
            ]
        )
        assert settings.provider.name == "openrouter"
        assert settings.model == "meta-llama/llama-3"
        assert settings.api_key == "k"
        assert settings.prefix == "?"
        assert settings.data_dir == tmp_path / "data"
        assert settings.identity_path == tmp_path / "me.md"
        assert settings.language == "en"

    def test_bad_model_selector(self):
        with pytest.raises(ConfigError, match="Invalid model format"):
            load_settings(["--token", "t", "--model", "gpt-4.1"])

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unknown provider"):
            load_settings(["--token", "t", "--model", "acme/model"])

    def test_model_from_environment(self, monkeypatch):
        monkeypatch.setenv("YAGI_MODEL", "groq/llama-3.3-70b")
        settings = load_settings(["--token", "t"])
        assert settings.provider.name == "groq"


class TestLoadIdentity:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "IDENTITY.md"
        path.write_text("You are yagi.", encoding="utf-8")
        assert load_identity(path) == "You are yagi."

    def test_missing_file_is_empty(self, tmp_path):
        assert load_identity(tmp_path / "missing.md") == ""

    def test_unreadable_path_is_empty(self, tmp_path):
        assert load_identity(tmp_path) == ""
