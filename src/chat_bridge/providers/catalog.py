"""Providers the bridge knows about but cannot talk to yet (spec only, no factory)."""
from __future__ import annotations

from chat_bridge.core.ports import ProviderSpec

ADVERTISED = (
    ProviderSpec(
        key="anthropic",
        name="Anthropic",
        description="Claude models from Anthropic",
        default_model="claude-3-5-sonnet-20241022",
        needs_api_key=True,
        models=(
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
            "claude-3-opus-20240229",
        ),
        base_url="https://api.anthropic.com/v1",
    ),
    ProviderSpec(
        key="gemini",
        name="Google Gemini",
        description="Gemini models from Google",
        default_model="gemini-2.0-flash-exp",
        needs_api_key=True,
        models=("gemini-2.0-flash-exp", "gemini-1.5-pro", "gemini-1.5-flash"),
    ),
)


def register(registry) -> None:
    for spec in ADVERTISED:
        registry.register_provider(spec)
