"""
Pytest configuration and fixtures.
"""

import os
import tempfile
from pathlib import Path

import pytest

# Keep tests away from the user's real config and catalog
os.environ["TANZU_CONFIG_DIR"] = tempfile.mkdtemp(prefix="pluginctl-test-config-")
os.environ["TEST_CUSTOM_CATALOG_CACHE_DIR"] = tempfile.mkdtemp(prefix="pluginctl-test-cache-")
os.environ["LOG_LEVEL"] = "WARNING"


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """A fresh, empty catalog cache directory."""
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def catalog_cache(cache_dir: Path):
    """A CatalogCache bound to the test cache directory."""
    from pluginctl.core.catalog import CatalogCache

    return CatalogCache(cache_dir)


@pytest.fixture
def test_settings(tmp_path: Path):
    """Settings with a known default discovery and no environment overrides."""
    from pluginctl.config import Settings

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return Settings(
        config_dir=config_dir,
        catalog_cache_dir=tmp_path / "cache",
        default_standalone_discovery_repository="fake.image.repo",
        default_standalone_discovery_image_path="package/standalone-plugins",
        default_standalone_discovery_image_tag="v1.0.0",
        log_level="WARNING",
    )


@pytest.fixture
def make_plugin():
    """Factory for PluginInfo records."""
    from pluginctl.models.plugin import PluginInfo

    def _make(name: str = "cluster", version: str = "v1.0.0", target: str = "kubernetes", path: str = "", **kwargs):
        return PluginInfo(
            name=name,
            version=version,
            target=target,
            installation_path=path or f"/plugins/{name}/{version}_{target or 'unknown'}",
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_cliplugin() -> dict:
    """A CLIPlugin resource as served by a cluster or found in a manifest."""
    return {
        "apiVersion": "cli.tanzu.vmware.com/v1alpha1",
        "kind": "CLIPlugin",
        "metadata": {"name": "cluster"},
        "spec": {
            "description": "Kubernetes cluster operations",
            "recommendedVersion": "v1.2.0",
            "target": "k8s",
            "artifacts": {
                "v1.2.0": [
                    {"image": "projects.registry.vmware.com/tkg/cluster:v1.2.0", "os": "linux", "arch": "amd64", "type": "oci"},
                ],
                "v1.0.0": [
                    {"image": "projects.registry.vmware.com/tkg/cluster:v1.0.0", "os": "linux", "arch": "amd64", "type": "oci"},
                ],
                "v1.10.0": [
                    {"image": "projects.registry.vmware.com/tkg/cluster:v1.10.0", "os": "linux", "arch": "amd64", "type": "oci"},
                ],
            },
        },
    }
