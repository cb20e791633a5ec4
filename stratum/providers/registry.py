"""
Stratum Providers - Registry.

Maps resource kinds to providers. Lookup order: exact kind, then package
prefix (the text before ``:``, e.g. ``aws`` for ``aws:ec2/Vpc``), then the
default provider.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

from loguru import logger

from stratum.core.exceptions import ConfigurationError, ProviderNotFoundError
from stratum.providers.base import Provider
from stratum.providers.simulated import SimulatedProvider

if TYPE_CHECKING:
    from stratum.config.models import ProvidersConfig


class ProviderRegistry:
    """
    Registry for provider lookup by resource kind.

    Usage:
        registry = ProviderRegistry()
        registry.register("aws", AwsProvider())
        registry.register("aws:rds/Instance", RdsProvider())
        provider = registry.resolve("aws:ec2/Vpc")  # AwsProvider
    """

    def __init__(self, default: Provider | None = None) -> None:
        self._providers: dict[str, Provider] = {}
        self._default = default

    def register(self, key: str, provider: Provider) -> None:
        """
        Register a provider for a kind or a kind prefix.

        Args:
            key: Full kind ("aws:ec2/Vpc") or package prefix ("aws")
            provider: Provider instance
        """
        if key in self._providers:
            logger.warning(f"Provider for '{key}' already registered, overwriting")
        self._providers[key] = provider
        logger.debug(f"Registered provider {provider.name} for '{key}'")

    def set_default(self, provider: Provider | None) -> None:
        self._default = provider

    def resolve(self, kind: str) -> Provider:
        """
        Get the provider handling ``kind``.

        Raises:
            ProviderNotFoundError: If nothing handles the kind
        """
        if kind in self._providers:
            return self._providers[kind]
        prefix = kind.split(":", 1)[0]
        if prefix in self._providers:
            return self._providers[prefix]
        if self._default is not None:
            return self._default
        raise ProviderNotFoundError(kind)

    def has(self, kind: str) -> bool:
        try:
            self.resolve(kind)
        except ProviderNotFoundError:
            return False
        return True

    @classmethod
    def from_config(cls, config: ProvidersConfig) -> ProviderRegistry:
        """Simulated provider as default, plus configured plugins."""
        registry = cls(default=SimulatedProvider(kinds=config.simulated))
        for key, target in config.plugins.items():
            registry.register(key, load_plugin(target))
        return registry


def load_plugin(target: str, **kwargs: Any) -> Provider:
    """
    Instantiate a provider from ``"package.module:attribute"``.

    The attribute may be a Provider subclass, a factory returning one, or
    a ready instance.

    Raises:
        ConfigurationError: Bad path, import failure, or wrong type
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(f"Provider plugin must look like 'module:attribute', got {target!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import provider module '{module_name}': {e}") from e

    try:
        obj = getattr(module, attribute)
    except AttributeError as e:
        raise ConfigurationError(f"Module '{module_name}' has no attribute '{attribute}'") from e

    if isinstance(obj, Provider):
        provider = obj
    elif callable(obj):
        provider = obj(**kwargs)
    else:
        provider = None
    if not isinstance(provider, Provider):
        raise ConfigurationError(f"'{target}' did not produce a Provider")
    logger.debug(f"Loaded provider plugin {target}")
    return provider
