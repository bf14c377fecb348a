# src/chat_bridge/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, Optional
import yaml


class ConfigError(ValueError):
    pass


class MissingCredentialsError(ConfigError):
    def __init__(self, env_vars: Iterable[str]):
        self.env_vars = list(env_vars)
        super().__init__("no API keys configured; set at least one of: " + ", ".join(self.env_vars))


_NUMBER = (int, float)

# Every key is optional; when present it must have this type
_TYPES = {
    "bridge.provider_a": str,
    "bridge.provider_b": str,
    "bridge.model_a": str,
    "bridge.model_b": str,
    "bridge.temperature_a": _NUMBER,
    "bridge.temperature_b": _NUMBER,
    "bridge.starter": str,
    "bridge.max_rounds": int,
    "bridge.max_tokens": int,
    "bridge.idle_timeout": _NUMBER,
    "bridge.round_pause": _NUMBER,
    "logging.level": str,
}


def _lookup(d: Dict[str, Any], dotted: str) -> Optional[Any]:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            return None
        cur = cur[k]
    return cur


def _check(d: Dict[str, Any], dotted: str, typ) -> None:
    val = _lookup(d, dotted)
    if val is None:
        return
    # bool is an int subclass; never accept it for numbers
    if isinstance(val, bool) or not isinstance(val, typ):
        want = "a number" if typ is _NUMBER else f"a {typ.__name__}"
        raise ConfigError(f"'{dotted}' must be {want}")


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config is not a mapping: {path}")

    for dotted, typ in _TYPES.items():
        _check(raw, dotted, typ)

    for section in ("bridge", "providers", "secrets", "logging"):
        if section in raw and raw[section] is not None and not isinstance(raw[section], dict):
            raise ConfigError(f"'{section}' must be a mapping")

    providers = raw.get("providers") or {}
    for name, pcfg in providers.items():
        if not isinstance(pcfg, dict):
            raise ConfigError(f"'providers.{name}' must be a mapping")
        for k in ("base_url", "model"):
            if pcfg.get(k) is not None and not isinstance(pcfg[k], str):
                raise ConfigError(f"'providers.{name}.{k}' must be a string")
        t = pcfg.get("timeout")
        if t is not None and (isinstance(t, bool) or not isinstance(t, _NUMBER)):
            raise ConfigError(f"'providers.{name}.timeout' must be a number")

    secrets = raw.get("secrets") or {}
    method = secrets.get("method")
    if method is not None:
        methods = [method] if isinstance(method, str) else method
        if not isinstance(methods, list) or not all(isinstance(m, str) for m in methods):
            raise ConfigError("'secrets.method' must be a string or a list of strings")
    mapping = secrets.get("mapping")
    if mapping is not None:
        if not isinstance(mapping, dict):
            raise ConfigError("'secrets.mapping' must be a mapping")
        for name, names in mapping.items():
            if not isinstance(names, dict) or not all(isinstance(v, str) for v in names.values()):
                raise ConfigError(f"'secrets.mapping.{name}' must map names to strings")

    # Normalise provider keys
    raw["providers"] = {str(k).lower(): v for k, v in providers.items()}
    bridge = raw.get("bridge") or {}
    for side in ("provider_a", "provider_b"):
        if bridge.get(side):
            bridge[side] = bridge[side].lower()
    raw["bridge"] = bridge

    # Leave paths as provided; resolve them later in bootstrap/composition
    return raw
