# tests/unit/test_config.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chat_bridge.config import CREDENTIAL_ENV_VARS, DEFAULT_STARTER, Settings
from chat_bridge.config_loader import ConfigError, MissingCredentialsError


def test_defaults():
    s = Settings.load({})
    assert (s.provider_a, s.provider_b) == ("openai", "openai")
    assert (s.temperature_a, s.temperature_b) == (0.7, 0.7)
    assert s.starter == DEFAULT_STARTER == "Hello! How are you today?"
    p = s.policy()
    assert (p.max_rounds, p.max_tokens, p.idle_timeout, p.round_pause) == (10, 800, 30.0, 0.5)


def test_yaml_then_env_precedence(monkeypatch):
    cfg = {
        "bridge": {"provider_a": "deepseek", "provider_b": "ollama", "max_rounds": 3, "temperature_b": 1.2},
        "logging": {"level": "INFO"},
    }
    monkeypatch.setenv("BRIDGE_PROVIDER_B", "LMStudio")
    monkeypatch.setenv("BRIDGE_LOG_LEVEL", "DEBUG")

    s = Settings.load(cfg)

    assert s.provider_a == "deepseek"
    assert s.provider_b == "lmstudio"
    assert s.max_rounds == 3
    assert s.temperature_b == 1.2
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize("bridge", [{"max_rounds": 0}, {"idle_timeout": 0}, {"idle_timeout": -1}])
def test_invalid_numbers_rejected(bridge):
    with pytest.raises(ConfigError):
        Settings.load({"bridge": bridge})


def test_api_key_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "  sk-openai  ")
    s = Settings.load({})
    assert s.api_key("openai") == "sk-openai"
    assert s.api_key("OpenAI") == "sk-openai"
    assert s.api_key("deepseek") == ""


def test_api_key_honours_secrets_mapping(monkeypatch):
    monkeypatch.setenv("WORK_OPENAI_KEY", "sk-work")
    s = Settings.load({"secrets": {"method": "env", "mapping": {"openai": {"api_key": "WORK_OPENAI_KEY"}}}})
    assert s.api_key("openai") == "sk-work"


def test_base_url_env_beats_yaml(monkeypatch):
    cfg = {"providers": {"openai": {"base_url": "https://yaml.example/v1"}}}
    assert Settings.load(cfg).base_url("openai") == "https://yaml.example/v1"

    monkeypatch.setenv("OPENAI_BASE_URL", "https://env.example/v1/")
    assert Settings.load(cfg).base_url("openai") == "https://env.example/v1"


def test_ollama_host_gets_api_suffix(monkeypatch):
    monkeypatch.setenv("OLLAMA_HOST", "http://gpu-box:11434/")
    assert Settings.load({}).base_url("ollama") == "http://gpu-box:11434/v1"


def test_no_override_means_provider_default():
    s = Settings.load({})
    assert s.base_url("openai") is None
    assert s.default_model("openai") == ""
    assert s.timeout("openai") is None


def test_model_and_timeout_lookups(monkeypatch):
    cfg = {"providers": {"deepseek": {"model": "deepseek-reasoner", "timeout": 90}}}
    s = Settings.load(cfg)
    assert s.default_model("deepseek") == "deepseek-reasoner"
    assert s.timeout("deepseek") == 90.0

    monkeypatch.setenv("DEEPSEEK_MODEL", "deepseek-chat")
    assert Settings.load(cfg).default_model("deepseek") == "deepseek-chat"


def test_validate_requires_any_key(monkeypatch):
    s = Settings.load({})
    assert not s.has_any_credentials()
    with pytest.raises(MissingCredentialsError) as ei:
        s.validate()
    assert ei.value.env_vars == CREDENTIAL_ENV_VARS
    assert "OPENAI_API_KEY" in str(ei.value)

    # any one provider's key is enough, even an unimplemented one
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    Settings.load({}).validate()


def test_settings_is_a_config_supplier():
    s = Settings.load({})
    for name in ("api_key", "base_url", "default_model", "timeout", "has_any_credentials", "validate"):
        assert callable(getattr(s, name))
