# src/chat_bridge/secrets/sources.py

from __future__ import annotations
import os
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Union

from loguru import logger

from chat_bridge.config_loader import ConfigError

try:
    import keyring as _keyring
except Exception:
    _keyring = None  # optional

KEYRING_SERVICE = "chat-bridge"


class KeySource(Protocol):
    label: str

    def lookup(self, var: str, provider: str) -> Optional[str]: ...


def _clean(val: Optional[str]) -> Optional[str]:
    return val.strip() if val and val.strip() else None


class EnvKeySource:
    """Reads the named variable, then PROVIDER_API_KEY for providers without a fixed name."""
    label = "env"

    def lookup(self, var: str, provider: str) -> Optional[str]:
        return _clean(os.getenv(var)) or _clean(os.getenv(f"{provider.upper()}_API_KEY"))


class KeyringKeySource:
    """
    OS keyring entries stored as (service='chat-bridge', account=<env var name>),
    e.g. `keyring set chat-bridge OPENAI_API_KEY`.
    """
    label = "keyring"

    def lookup(self, var: str, provider: str) -> Optional[str]:
        if _keyring is None:
            return None
        try:
            return _clean(_keyring.get_password(KEYRING_SERVICE, var))
        except Exception as e:
            # No usable backend (headless CI, locked keychain)
            logger.debug(f"keyring_unavailable | account={var} | {e!r}")
            return None


_SOURCES = {"env": EnvKeySource, "keyring": KeyringKeySource}


def sources_for(method: Union[str, Iterable[str]]) -> List[KeySource]:
    """Build the lookup chain for 'env', 'keyring' or an ordered list of both."""
    names = [method] if isinstance(method, str) else list(method)
    chain: List[KeySource] = []
    seen = set()
    for name in names:
        key = str(name).strip().lower()
        if key not in _SOURCES:
            raise ConfigError(f"unknown secrets method '{name}' (expected one of: {', '.join(sorted(_SOURCES))})")
        if key in seen:
            continue
        seen.add(key)
        chain.append(_SOURCES[key]())
    return chain


class KeyResolver:
    """
    Finds a provider's API key by walking the configured sources in order.
    'overrides' renames the variable per provider, e.g. {"openai": {"api_key": "WORK_OPENAI_KEY"}};
    otherwise the caller's default name is used, falling back to the provider key itself.
    """

    def __init__(
        self,
        method: Union[str, Sequence[str]] = "env",
        overrides: Optional[Dict[str, Dict[str, str]]] = None,
    ):
        self.chain = sources_for(method)
        self.overrides = {str(k).lower(): v for k, v in (overrides or {}).items()}

    def resolve(self, provider: str, field: str = "api_key", default: Optional[str] = None) -> Optional[str]:
        provider = provider.lower()
        var = (self.overrides.get(provider) or {}).get(field) or default or provider
        for source in self.chain:
            val = source.lookup(var, provider)
            if val:
                logger.debug(f"key_found | provider={provider} | source={source.label} | name={var}")
                return val
        return None
