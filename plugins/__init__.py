# Plugins module - Protocol integrations
# Each plugin contributes exactly one protocol fiber, keyed by its id

from .base import (
    Plugin, PluginConfig, PluginMetadata, PluginLoadResult, PluginRegistryEntry,
    fiber_from_plugin,
)
from .loader import PluginLoader
from .oneinch import OneInchPlugin
from .uniswap import UniswapPlugin


def bundled_plugins():
    """Plugins shipped with the terminal."""
    return [OneInchPlugin(), UniswapPlugin()]


__all__ = [
    "Plugin", "PluginConfig", "PluginMetadata", "PluginLoadResult", "PluginRegistryEntry",
    "fiber_from_plugin", "PluginLoader", "OneInchPlugin", "UniswapPlugin",
    "bundled_plugins",
]
