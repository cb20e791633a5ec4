"""
Stratum Providers - Provider interface, registry and simulated cloud.
"""

from stratum.providers.base import Provider
from stratum.providers.registry import ProviderRegistry, load_plugin
from stratum.providers.simulated import SimulatedProvider

__all__ = [
    "Provider",
    "ProviderRegistry",
    "SimulatedProvider",
    "load_plugin",
]
