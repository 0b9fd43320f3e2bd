"""
Pydantic models for installed and discoverable plugins.
"""

from pluginctl.models.plugin import PluginInfo, Target, normalize_target
from pluginctl.models.discovery import (
    Artifact,
    Artifacts,
    CLIPlugin,
    Discovered,
    DiscoveryType,
    ListPluginsResponse,
    PluginDiscovery,
    RESTPlugin,
)

__all__ = [
    # Installed
    "PluginInfo",
    "Target",
    "normalize_target",
    # Discovery
    "Artifact",
    "Artifacts",
    "CLIPlugin",
    "Discovered",
    "DiscoveryType",
    "ListPluginsResponse",
    "PluginDiscovery",
    "RESTPlugin",
]
