"""
Configuration management for pluginctl.

Precedence: explicit kwargs > env vars > config.yaml > defaults

Config file: {config_dir}/pluginctl.yaml
Catalog:     {catalog_cache_dir}/catalog.yaml

The ``default_*`` fields stand in for values baked in at build time; the
non-default fields carry the run-time overrides users set in their environment.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "pluginctl.yaml"

# Environment variables recognised for each field, besides the field name itself
ENV_ALIASES: dict[str, tuple[str, ...]] = {
    "config_dir": ("TANZU_CONFIG_DIR",),
    "catalog_cache_dir": ("TEST_CUSTOM_CATALOG_CACHE_DIR", "CATALOG_CACHE_DIR"),
    "custom_image_repository": ("TKG_CUSTOM_IMAGE_REPOSITORY",),
    "standalone_discovery_image_path": ("TANZU_CLI_DEFAULT_STANDALONE_DISCOVERY_IMAGE_PATH",),
    "standalone_discovery_image_tag": ("TANZU_CLI_DEFAULT_STANDALONE_DISCOVERY_IMAGE_TAG",),
    "standalone_discovery_type": ("TANZU_CLI_DEFAULT_STANDALONE_DISCOVERY_TYPE",),
    "standalone_discovery_local_path": ("TANZU_CLI_DEFAULT_STANDALONE_DISCOVERY_LOCAL_PATH",),
    "pre_release_plugin_repo_image": ("TANZU_CLI_PRE_RELEASE_REPO_IMAGE",),
    "additional_discovery_images_for_testing": (
        "TANZU_CLI_ADDITIONAL_PLUGIN_DISCOVERY_IMAGES_TEST_ONLY",
    ),
    "allowed_registries": ("ALLOWED_REGISTRY",),
}


def _aliases(field_name: str) -> AliasChoices:
    return AliasChoices(field_name, *ENV_ALIASES.get(field_name, ()))


def _resolve_config_dir() -> Path:
    """Resolve the config directory from env or default, before Settings init."""
    for name in ENV_ALIASES["config_dir"] + ("CONFIG_DIR",):
        raw = os.environ.get(name, "")
        if raw:
            return Path(raw).expanduser().resolve()
    return Path.home() / ".config" / "tanzu"


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load pluginctl.yaml from the config directory."""
    config_file = config_dir / CONFIG_FILE_NAME
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"{CONFIG_FILE_NAME} is not a dict, ignoring: {config_file}")
            return {}
        return data
    except Exception as e:
        logger.warning(f"Error loading {CONFIG_FILE_NAME}: {e}")
        return {}


def save_yaml_config(config_dir: Path, data: dict[str, Any]) -> Path:
    """Write config values to {config_dir}/pluginctl.yaml."""
    config_file = get_config_path(config_dir)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def get_config_path(config_dir: Path) -> Path:
    """Get the pluginctl.yaml path for a config directory."""
    return config_dir / CONFIG_FILE_NAME


def split_list(value: str) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty entries."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """pluginctl configuration. Precedence: kwargs > env vars > pluginctl.yaml > defaults."""

    # Locations
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config" / "tanzu",
        validation_alias=_aliases("config_dir"),
        description="Directory holding pluginctl.yaml",
    )
    catalog_cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "tanzu",
        validation_alias=_aliases("catalog_cache_dir"),
        description="Directory holding the plugin catalog cache file",
    )
    local_discovery_root: Optional[Path] = Field(
        default=None,
        description="Base for relative local discovery paths (defaults to {config_dir}/discovery)",
    )

    # Build-time defaults
    default_allowed_plugin_repositories: str = Field(
        default="",
        description="Comma-separated registries always trusted for plugin artifacts",
    )
    default_standalone_discovery_repository: str = Field(default="")
    default_standalone_discovery_image_path: str = Field(default="")
    default_standalone_discovery_image_tag: str = Field(default="")
    default_standalone_discovery_name: str = Field(default="default")
    default_standalone_discovery_type: str = Field(default="oci")
    default_standalone_discovery_local_path: str = Field(default="")

    # Run-time overrides
    custom_image_repository: str = Field(
        default="",
        validation_alias=_aliases("custom_image_repository"),
        description="Registry replacing the default discovery repository",
    )
    standalone_discovery_image_path: str = Field(
        default="", validation_alias=_aliases("standalone_discovery_image_path")
    )
    standalone_discovery_image_tag: str = Field(
        default="", validation_alias=_aliases("standalone_discovery_image_tag")
    )
    standalone_discovery_type: str = Field(
        default="", validation_alias=_aliases("standalone_discovery_type")
    )
    standalone_discovery_local_path: str = Field(
        default="", validation_alias=_aliases("standalone_discovery_local_path")
    )
    pre_release_plugin_repo_image: str = Field(
        default="",
        validation_alias=_aliases("pre_release_plugin_repo_image"),
        description="Image of a pre-release plugin repository; its host is trusted",
    )
    additional_discovery_images_for_testing: str = Field(
        default="",
        validation_alias=_aliases("additional_discovery_images_for_testing"),
        description="Comma-separated extra discovery images (test only); their hosts are trusted",
    )
    allowed_registries: str = Field(
        default="",
        validation_alias=_aliases("allowed_registries"),
        description="Comma-separated extra trusted registries",
    )

    # Discovery
    discovery_timeout: float = Field(default=5.0, description="REST discovery timeout in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s%(diagnostics)s",
        description="Log format string",
    )

    model_config = {
        "env_prefix": "",
        "extra": "ignore",
        "populate_by_name": True,
        "env_ignore_empty": True,
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject pluginctl.yaml values as fallbacks below env vars and kwargs."""
        if not isinstance(data, dict):
            data = {}

        config_dir = data.get("config_dir")
        config_dir = Path(config_dir).expanduser() if config_dir else _resolve_config_dir()

        for key, value in _load_yaml_config(config_dir).items():
            names = (key,) + ENV_ALIASES.get(key, ())
            if any(data.get(name) is not None for name in names):
                continue
            # Don't override if env var is set
            if any(os.environ.get(name.upper()) or os.environ.get(name) for name in names):
                continue
            data[key] = value

        return data

    @property
    def default_standalone_discovery_image(self) -> str:
        """The default standalone discovery image with run-time overrides applied."""
        repository = self.custom_image_repository or self.default_standalone_discovery_repository
        image_path = self.standalone_discovery_image_path or self.default_standalone_discovery_image_path
        image_tag = self.standalone_discovery_image_tag or self.default_standalone_discovery_image_tag
        return f"{repository.strip('/')}/{image_path.strip('/')}:{image_tag}"

    @property
    def effective_discovery_type(self) -> str:
        """Discovery type used for the default standalone discovery."""
        return self.standalone_discovery_type or self.default_standalone_discovery_type

    @property
    def effective_local_path(self) -> str:
        """Local path used when the default standalone discovery is local."""
        return self.standalone_discovery_local_path or self.default_standalone_discovery_local_path

    @property
    def additional_test_discovery_images(self) -> list[str]:
        return split_list(self.additional_discovery_images_for_testing)

    @property
    def discovery_root(self) -> Path:
        """Base directory for relative local discovery paths."""
        if self.local_discovery_root:
            return self.local_discovery_root
        return self.config_dir / "discovery"


# Global settings instance, created on first use
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global _settings
    _settings = Settings()
    return _settings
