from __future__ import annotations
from typing import Callable, Dict, List, Optional
from importlib import import_module
from importlib.metadata import entry_points

from loguru import logger

from chat_bridge.core.errors import ProviderNotImplemented
from chat_bridge.core.ports import Provider, ProviderConfig, ProviderSpec

ProviderFactory = Callable[[ProviderConfig], Provider]

ENTRY_POINT_GROUP = "chat_bridge.providers"

# Modules whose register(registry) installs the built-in providers
BUILTIN_MODULES = (
    "chat_bridge.providers.catalog",
    "chat_bridge.providers.openai_compat",
    "chat_bridge.providers.echo",
)


class ProviderRegistry:
    """
    Catalog of provider kinds.

    Specs (what a provider is) and factories (how to build one) live in two
    separate maps so a provider can be advertised before it is implemented.
    Keys are case-insensitive; registering an existing key replaces it.
    """

    def __init__(self) -> None:
        self._specs: Dict[str, ProviderSpec] = {}
        self._factories: Dict[str, ProviderFactory] = {}

    def register_provider(self, spec: ProviderSpec) -> None:
        key = spec.key.lower()
        if key in self._specs:
            logger.debug(f"registry_replace_spec | key={key}")
        self._specs[key] = spec

    def register_factory(self, key: str, factory: ProviderFactory) -> None:
        key = key.lower()
        if key in self._factories:
            logger.debug(f"registry_replace_factory | key={key}")
        self._factories[key] = factory

    def factory(self, key: str) -> Callable[[ProviderFactory], ProviderFactory]:
        def deco(fn: ProviderFactory) -> ProviderFactory:
            self.register_factory(key, fn)
            return fn
        return deco

    def get_spec(self, key: str) -> Optional[ProviderSpec]:
        return self._specs.get(key.lower())

    def list_providers(self) -> List[ProviderSpec]:
        # Iteration order is not part of the contract
        return list(self._specs.values())

    def has_factory(self, key: str) -> bool:
        return key.lower() in self._factories

    def new_provider(self, key: str, config: ProviderConfig) -> Provider:
        factory = self._factories.get(key.lower())
        if factory is None:
            raise ProviderNotImplemented(key)
        return factory(config)


def build_registry(*, load_plugins: bool = True) -> ProviderRegistry:
    """
    Composition helper: a fresh registry with the built-in providers and, when
    load_plugins is set, any third-party register(registry) callables exposed
    under the 'chat_bridge.providers' entry-point group.
    """
    registry = ProviderRegistry()
    for name in BUILTIN_MODULES:
        import_module(name).register(registry)

    if load_plugins:
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            logger.debug(f"registry_plugin | name={ep.name} | target={ep.value}")
            ep.load()(registry)
    return registry
