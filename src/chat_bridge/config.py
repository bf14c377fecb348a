# src/chat_bridge/config.py

from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .config_loader import ConfigError, MissingCredentialsError
from .core.bridge_session import BridgePolicy
from .secrets.sources import KeyResolver

DEFAULT_STARTER = "Hello! How are you today?"


@dataclass(frozen=True)
class ProviderEnv:
    """Environment variable names that configure one provider."""
    api_key: Optional[str]
    base_url: Optional[str]
    model: Optional[str]
    base_url_suffix: str = ""


PROVIDER_ENV: Dict[str, ProviderEnv] = {
    "openai": ProviderEnv("OPENAI_API_KEY", "OPENAI_BASE_URL", "OPENAI_MODEL"),
    "anthropic": ProviderEnv("ANTHROPIC_API_KEY", None, "ANTHROPIC_MODEL"),
    "gemini": ProviderEnv("GEMINI_API_KEY", None, "GEMINI_MODEL"),
    "deepseek": ProviderEnv("DEEPSEEK_API_KEY", "DEEPSEEK_BASE_URL", "DEEPSEEK_MODEL"),
    "openrouter": ProviderEnv("OPENROUTER_API_KEY", "OPENROUTER_BASE_URL", "OPENROUTER_MODEL"),
    # OLLAMA_HOST is the server root; the chat API lives under /v1
    "ollama": ProviderEnv(None, "OLLAMA_HOST", "OLLAMA_MODEL", base_url_suffix="/v1"),
    "lmstudio": ProviderEnv(None, "LMSTUDIO_BASE_URL", "LMSTUDIO_MODEL"),
}

CREDENTIAL_ENV_VARS: List[str] = [e.api_key for e in PROVIDER_ENV.values() if e.api_key]


def _env(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    val = os.getenv(name)
    return val.strip() if val and val.strip() else None


@dataclass
class Settings:
    """
    Configuration supplier for the bridge.
    Precedence: built-in defaults < YAML file < environment < CLI flags (applied by the caller).
    """
    provider_a: str = "openai"
    provider_b: str = "openai"
    model_a: str = ""
    model_b: str = ""
    temperature_a: float = 0.7
    temperature_b: float = 0.7
    starter: str = DEFAULT_STARTER
    max_rounds: int = 10
    max_tokens: int = 800
    idle_timeout: float = 30.0
    round_pause: float = 0.5
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    secrets: KeyResolver = field(default_factory=KeyResolver)

    @classmethod
    def load(cls, cfg: Optional[Dict[str, Any]] = None) -> "Settings":
        cfg = cfg or {}
        bridge = cfg.get("bridge") or {}
        logging_cfg = cfg.get("logging") or {}
        secrets_cfg = cfg.get("secrets") or {}

        s = cls(
            providers=dict(cfg.get("providers") or {}),
            secrets=KeyResolver(
                method=secrets_cfg.get("method", "env"),
                overrides=secrets_cfg.get("mapping") or {},
            ),
        )
        for key in ("provider_a", "provider_b", "model_a", "model_b", "starter"):
            if bridge.get(key):
                setattr(s, key, str(bridge[key]))
        for key in ("temperature_a", "temperature_b", "idle_timeout", "round_pause"):
            if bridge.get(key) is not None:
                setattr(s, key, float(bridge[key]))
        for key in ("max_rounds", "max_tokens"):
            if bridge.get(key) is not None:
                setattr(s, key, int(bridge[key]))
        if logging_cfg.get("level"):
            s.log_level = str(logging_cfg["level"])
        if logging_cfg.get("file"):
            s.log_file = str(logging_cfg["file"])

        s.provider_a = (_env("BRIDGE_PROVIDER_A") or s.provider_a).lower()
        s.provider_b = (_env("BRIDGE_PROVIDER_B") or s.provider_b).lower()
        s.log_level = _env("BRIDGE_LOG_LEVEL") or s.log_level
        s.log_file = _env("BRIDGE_LOG_FILE") or s.log_file

        if s.max_rounds < 1:
            raise ConfigError("'bridge.max_rounds' must be at least 1")
        if s.idle_timeout <= 0:
            raise ConfigError("'bridge.idle_timeout' must be positive")
        return s

    # ----- per-provider lookups -----

    def _provider_cfg(self, provider: str) -> Dict[str, Any]:
        return self.providers.get(provider.lower()) or {}

    def api_key(self, provider: str) -> str:
        names = PROVIDER_ENV.get(provider.lower())
        default = names.api_key if names else None
        return self.secrets.resolve(provider.lower(), "api_key", default=default) or ""

    def base_url(self, provider: str) -> Optional[str]:
        """Override for the provider's endpoint, or None to use the provider's own default."""
        names = PROVIDER_ENV.get(provider.lower())
        if names:
            from_env = _env(names.base_url)
            if from_env:
                return from_env.rstrip("/") + names.base_url_suffix
        return self._provider_cfg(provider).get("base_url") or None

    def default_model(self, provider: str) -> str:
        """Configured model, or "" to let the provider use its own default."""
        names = PROVIDER_ENV.get(provider.lower())
        if names:
            from_env = _env(names.model)
            if from_env:
                return from_env
        return self._provider_cfg(provider).get("model") or ""

    def timeout(self, provider: str) -> Optional[float]:
        t = self._provider_cfg(provider).get("timeout")
        return float(t) if t is not None else None

    # ----- credential gate -----

    def has_any_credentials(self) -> bool:
        return any(
            self.secrets.resolve(provider, "api_key", default=names.api_key)
            for provider, names in PROVIDER_ENV.items()
            if names.api_key
        )

    def validate(self) -> None:
        if not self.has_any_credentials():
            raise MissingCredentialsError(CREDENTIAL_ENV_VARS)

    def policy(self) -> BridgePolicy:
        return BridgePolicy(
            max_rounds=self.max_rounds,
            max_tokens=self.max_tokens,
            idle_timeout=self.idle_timeout,
            round_pause=self.round_pause,
        )
