# tests/unit/test_config_loader.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from textwrap import dedent

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chat_bridge.config_loader import ConfigError, MissingCredentialsError, load_config


def write_yaml(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dedent(text).lstrip("\n").rstrip() + "\n", encoding="utf-8")
    return p


def test_load_config_ok(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        bridge: { provider_a: OpenAI, provider_b: DeepSeek, max_rounds: 4, temperature_a: 1 }
        providers:
          OLLAMA: { base_url: "http://gpu-box:11434/v1", model: "qwen2.5", timeout: 60 }
        secrets: { method: env, mapping: {} }
        logging: { level: info }
        """,
    )
    data = load_config(cfg)
    assert data["bridge"]["provider_a"] == "openai"     # normalised
    assert data["bridge"]["provider_b"] == "deepseek"
    assert data["bridge"]["temperature_a"] == 1         # ints are accepted as numbers
    assert "ollama" in data["providers"]
    assert data["providers"]["ollama"]["timeout"] == 60


def test_empty_file_is_empty_config(tmp_path: Path):
    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    assert load_config(cfg) == {}


def test_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_top_level_must_be_mapping(tmp_path: Path):
    cfg = write_yaml(tmp_path / "c.yaml", "- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(cfg)


@pytest.mark.parametrize("body", [
    "bridge: { max_rounds: three }",
    "bridge: { max_rounds: 2.5 }",
    "bridge: { temperature_b: true }",
    "bridge: { idle_timeout: '30' }",
    "bridge: { provider_a: 7 }",
    "bridge: [openai]",
    "providers: { openai: nope }",
    "providers: { openai: { timeout: fast } }",
    "providers: { openai: { model: 4 } }",
    "secrets: { method: 3 }",
    "secrets: { method: [env, 1] }",
    "secrets: { method: { env: true } }",
    "secrets: { mapping: [OPENAI_API_KEY] }",
    "secrets: { mapping: { openai: OPENAI_API_KEY } }",
    "secrets: { mapping: { openai: { api_key: 12 } } }",
])
def test_load_config_type_errors(tmp_path: Path, body):
    cfg = write_yaml(tmp_path / "c.yaml", body)
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_missing_credentials_message_lists_vars():
    err = MissingCredentialsError(["OPENAI_API_KEY", "ANTHROPIC_API_KEY"])
    assert isinstance(err, ConfigError)
    assert err.env_vars == ["OPENAI_API_KEY", "ANTHROPIC_API_KEY"]
    assert "OPENAI_API_KEY, ANTHROPIC_API_KEY" in str(err)
