"""
Discovery protocol and normalization.

Every backend exposes ``name``, ``type`` and ``async list()``. Backends are
independent classes selected by configuration; what they share is the
normalization below, which turns raw listings into Discovered records with
sorted, unique supported versions.
"""

from typing import Any, Mapping, Optional, Protocol, runtime_checkable

from pluginctl.lib.typed_errors import VersionParseError
from pluginctl.lib.versions import InvalidVersion, parse_version, sort_versions
from pluginctl.models.discovery import (
    Artifact,
    Artifacts,
    CLIPlugin,
    Discovered,
    RESTPlugin,
)
from pluginctl.models.plugin import normalize_target


@runtime_checkable
class Discovery(Protocol):
    """A source of discoverable plugins."""

    @property
    def name(self) -> str: ...

    @property
    def type(self) -> str: ...

    async def list(self) -> list[Discovered]: ...


def sorted_supported_versions(plugin_name: str, versions: Any) -> list[str]:
    """Unique, ascending versions, or VersionParseError naming the plugin."""
    versions = list(versions)
    try:
        return sort_versions(versions)
    except InvalidVersion:
        bad = _first_invalid(versions)
        raise VersionParseError(plugin_name, bad) from None


def _first_invalid(versions: list[str]) -> str:
    for v in versions:
        try:
            parse_version(v)
        except InvalidVersion:
            return v
    return ""


def copy_artifacts(artifacts: Artifacts) -> Artifacts:
    return {
        version: [a.model_copy() for a in entries]
        for version, entries in artifacts.items()
    }


def override_image_repository(
    artifacts: Artifacts,
    overrides: Optional[Mapping[str, str]],
) -> Artifacts:
    """Rewrite artifact images whose reference starts with an original registry.

    Only the first occurrence of the original registry is replaced. Returns a
    new mapping; the input is not modified.
    """
    if not overrides:
        return artifacts

    rewritten: Artifacts = {}
    for version, entries in artifacts.items():
        updated: list[Artifact] = []
        for artifact in entries:
            image = artifact.image
            if image:
                for original, override in overrides.items():
                    if image.startswith(original):
                        image = image.replace(original, override, 1)
            updated.append(artifact.model_copy(update={"image": image}))
        rewritten[version] = updated
    return rewritten


def discovered_from_cli_plugin(
    plugin: CLIPlugin,
    image_repository_override: Optional[Mapping[str, str]] = None,
) -> Discovered:
    """Normalize a CLIPlugin resource.

    Source and discovery type are left empty; the calling backend stamps them.

    Raises:
        VersionParseError: If any artifact version is not a valid version
    """
    artifacts = override_image_repository(plugin.spec.artifacts, image_repository_override)
    return Discovered(
        name=plugin.name,
        description=plugin.spec.description,
        recommended_version=plugin.spec.recommended_version,
        optional=plugin.spec.optional,
        target=normalize_target(plugin.spec.target),
        supported_versions=sorted_supported_versions(plugin.name, artifacts.keys()),
        distribution=copy_artifacts(artifacts),
    )


def discovered_from_rest(plugin: RESTPlugin) -> Discovered:
    """Normalize one entry of a REST listing.

    Raises:
        VersionParseError: If any artifact version is not a valid version
    """
    return Discovered(
        name=plugin.name,
        description=plugin.description,
        recommended_version=plugin.recommended_version,
        optional=plugin.optional,
        target=normalize_target(plugin.target),
        supported_versions=sorted_supported_versions(plugin.name, plugin.artifacts.keys()),
        distribution=copy_artifacts(plugin.artifacts),
    )


def stamp(plugins: list[Discovered], source: str, discovery_type: str) -> list[Discovered]:
    """Set source and discovery type on records, overriding anything from the payload."""
    for plugin in plugins:
        plugin.source = source
        plugin.discovery_type = discovery_type
    return plugins
