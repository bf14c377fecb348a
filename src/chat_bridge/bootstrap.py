from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

from .config import Settings
from .config_loader import load_config
from .logging_setup import configure_logging
from .providers.registry import build_registry


def build_app(
    config_path: Optional[Path] = None,
    *,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    load_plugins: bool = True,
) -> Dict[str, Any]:
    """
    Composition root: load .env and the optional YAML file, build settings,
    configure logging and create the provider registry.
    Returns: dict with cfg, settings, registry.
    """
    load_dotenv()
    cfg = load_config(config_path) if config_path else {}
    settings = Settings.load(cfg)

    if log_level:
        settings.log_level = log_level
    if log_file:
        settings.log_file = log_file
    configure_logging(settings.log_level, settings.log_file)

    registry = build_registry(load_plugins=load_plugins)

    return {
        "cfg": cfg,
        "settings": settings,
        "registry": registry,
    }
