"""Helpers for discovery source configuration."""

import logging
from typing import Optional

from pluginctl.config import Settings, get_settings
from pluginctl.models.discovery import (
    DiscoveryType,
    LocalDiscoverySource,
    OCIDiscoverySource,
    PluginDiscovery,
)

logger = logging.getLogger(__name__)

# PluginDiscovery attribute for each discovery type
_VARIANTS = {
    DiscoveryType.LOCAL.value: "local",
    DiscoveryType.OCI.value: "oci",
    DiscoveryType.KUBERNETES.value: "kubernetes",
    DiscoveryType.REST.value: "rest",
    DiscoveryType.GCP.value: "gcp",
}

# Fields that identify a source of each type
_IDENTITY_FIELDS = {
    "local": ("name", "path"),
    "oci": ("name", "image"),
    "kubernetes": ("name", "path", "context"),
    "rest": ("name", "base_path", "endpoint"),
    "gcp": ("name", "bucket", "manifest_path"),
}


def discovery_type(source: PluginDiscovery) -> str:
    """The discovery type of a configured source."""
    for dtype, attr in _VARIANTS.items():
        if getattr(source, attr) is not None:
            return dtype
    return ""


def discovery_name(source: PluginDiscovery) -> str:
    for attr in _VARIANTS.values():
        variant = getattr(source, attr)
        if variant is not None:
            return variant.name
    return ""


def check_discovery_name(source: PluginDiscovery, name: str) -> bool:
    """True if the source, whatever its type, is named ``name``."""
    return any(
        getattr(source, attr) is not None and getattr(source, attr).name == name
        for attr in _VARIANTS.values()
    )


def compare_discovery_source(a: PluginDiscovery, b: PluginDiscovery, dtype: str) -> bool:
    """True if both sources configure the same ``dtype`` source identically."""
    attr = _VARIANTS.get(dtype)
    if attr is None:
        return False
    left, right = getattr(a, attr), getattr(b, attr)
    if left is None or right is None:
        return False
    return all(getattr(left, f) == getattr(right, f) for f in _IDENTITY_FIELDS[attr])


def default_standalone_discovery(settings: Settings) -> PluginDiscovery:
    """The default standalone discovery source described by settings."""
    name = settings.default_standalone_discovery_name
    if settings.effective_discovery_type == DiscoveryType.LOCAL.value:
        return PluginDiscovery(
            local=LocalDiscoverySource(name=name, path=settings.effective_local_path)
        )
    return PluginDiscovery(
        oci=OCIDiscoverySource(name=name, image=settings.default_standalone_discovery_image)
    )


def populate_default_standalone_discovery(
    sources: list[PluginDiscovery],
    settings: Optional[Settings] = None,
) -> bool:
    """Make the default standalone discovery the first source, in place.

    Any existing source with the default name is replaced. Returns True if
    ``sources`` changed.
    """
    if settings is None:
        settings = get_settings()

    default = default_standalone_discovery(settings)
    dtype = discovery_type(default)
    name = settings.default_standalone_discovery_name

    existing = [i for i, s in enumerate(sources) if check_discovery_name(s, name)]
    if existing == [0] and compare_discovery_source(sources[0], default, dtype):
        return False

    for i in reversed(existing):
        del sources[i]
    sources.insert(0, default)
    logger.info(f"Default standalone discovery '{name}' set to {dtype} source")
    return True
