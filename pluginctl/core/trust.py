"""
Trust resolution for plugin sources.

Registries and artifact locations listed here are the ones plugins may be
installed from. Everything is derived from Settings; nothing touches the
network.
"""

from typing import Optional
from urllib.parse import urlparse

from pluginctl.config import Settings, get_settings, split_list

DEFAULT_CENTRAL_DISCOVERY_IMAGE = "projects.registry.vmware.com/tanzu_cli/plugins/plugin-inventory:latest"

# Bucket holding advanced plugins published with the legacy GCP discovery
ADVANCED_PLUGINS_BUCKET = "tanzu-cli-advanced-plugins"

DEFAULT_TMC_PLUGINS_ARTIFACT_REPOSITORY = "https://tmc-cli.s3-us-west-2.amazonaws.com/plugins/artifacts"


def image_hostname(image: str) -> str:
    """Registry host of an image reference, or "" if it has none."""
    if not image:
        return ""
    try:
        return urlparse(f"https://{image}").hostname or ""
    except ValueError:
        return ""


def gcp_bucket_uri(bucket: str) -> str:
    return f"https://storage.googleapis.com/{bucket}/"


def get_trusted_registries(settings: Optional[Settings] = None) -> list[str]:
    """Registries plugin images may come from, in a stable order without duplicates."""
    settings = settings or get_settings()

    candidates: list[str] = []
    candidates.extend(split_list(settings.default_allowed_plugin_repositories))
    if settings.custom_image_repository:
        candidates.append(settings.custom_image_repository)
    if settings.pre_release_plugin_repo_image:
        candidates.append(image_hostname(settings.pre_release_plugin_repo_image))
    candidates.append(image_hostname(DEFAULT_CENTRAL_DISCOVERY_IMAGE))
    candidates.extend(image_hostname(i) for i in settings.additional_test_discovery_images)
    candidates.extend(split_list(settings.allowed_registries))

    return list(dict.fromkeys(c for c in candidates if c))


def get_trusted_artifact_locations() -> list[str]:
    """URI prefixes plugin binaries may be downloaded from."""
    return [
        gcp_bucket_uri(ADVANCED_PLUGINS_BUCKET),
        DEFAULT_TMC_PLUGINS_ARTIFACT_REPOSITORY,
    ]


def is_trusted_image(image: str, settings: Optional[Settings] = None) -> bool:
    """True if ``image`` lives on, or under, a trusted registry."""
    host = image_hostname(image)
    for registry in get_trusted_registries(settings):
        registry = registry.rstrip("/")
        if host == registry or image.startswith(registry + "/"):
            return True
    return False


def is_trusted_artifact_uri(uri: str) -> bool:
    return any(uri.startswith(location) for location in get_trusted_artifact_locations())
