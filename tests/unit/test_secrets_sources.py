# tests/unit/test_secrets_sources.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import chat_bridge.secrets.sources as src
from chat_bridge.config_loader import ConfigError
from chat_bridge.secrets.sources import EnvKeySource, KeyResolver, sources_for


def test_method_string_and_list(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    r1 = KeyResolver(method="env", overrides={"openai": {"api_key": "OPENAI_API_KEY"}})
    assert r1.resolve("openai") == "sk-env"

    # bare provider key -> derived variable
    r2 = KeyResolver(method=["env"])
    assert r2.resolve("OpenAI") == "sk-env"


def test_default_name_used_without_override(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-key")
    assert KeyResolver().resolve("deepseek", default="DEEPSEEK_API_KEY") == "ds-key"


def test_override_beats_default(monkeypatch):
    monkeypatch.setenv("WORK_KEY", "sk-work")
    r = KeyResolver(overrides={"OpenAI": {"api_key": "WORK_KEY"}})
    assert r.resolve("openai", default="OPENAI_API_KEY") == "sk-work"


def test_blank_env_value_is_a_miss(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "   ")
    assert EnvKeySource().lookup("OPENAI_API_KEY", "openai") is None
    assert KeyResolver().resolve("openai") is None


def test_unknown_method_raises():
    with pytest.raises(ConfigError):
        sources_for("vault")


def test_duplicate_methods_collapse():
    assert [s.label for s in sources_for(["env", "ENV", "keyring"])] == ["env", "keyring"]


def test_keyring_then_env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    class FakeKeyring:
        def get_password(self, service, account):
            if (service, account) == ("chat-bridge", "OPENAI_API_KEY"):
                return "sk-from-keyring"
            return None

    monkeypatch.setattr(src, "_keyring", FakeKeyring(), raising=True)

    r = KeyResolver(method=["keyring", "env"])
    assert r.resolve("openai", default="OPENAI_API_KEY") == "sk-from-keyring"

    # Keyring miss -> env wins
    class Empty:
        def get_password(self, *_):
            return None

    monkeypatch.setattr(src, "_keyring", Empty(), raising=True)
    assert r.resolve("openai", default="OPENAI_API_KEY") == "sk-from-env"


def test_broken_keyring_backend_is_a_miss(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    class Locked:
        def get_password(self, *_):
            raise RuntimeError("no backend available")

    monkeypatch.setattr(src, "_keyring", Locked(), raising=True)
    r = KeyResolver(method=["keyring", "env"])
    assert r.resolve("openai", default="OPENAI_API_KEY") == "sk-from-env"


def test_keyring_absent(monkeypatch):
    monkeypatch.setattr(src, "_keyring", None, raising=True)
    assert KeyResolver(method="keyring").resolve("openai", default="OPENAI_API_KEY") is None
