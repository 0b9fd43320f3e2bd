"""
Discovery from CLIPlugin manifests in a local directory.

Each *.yaml / *.yml file in the directory may hold one or more CLIPlugin
documents. Other files and non-CLIPlugin documents are ignored.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from pluginctl.core.discovery.base import discovered_from_cli_plugin, stamp
from pluginctl.lib.typed_errors import UpstreamError
from pluginctl.models.discovery import CLIPlugin, Discovered, DiscoveryType

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml")


def load_cli_plugins(directory: Path) -> list[CLIPlugin]:
    """Read every CLIPlugin document under ``directory`` (non-recursive).

    Raises:
        UpstreamError: If a manifest is not valid YAML or not a valid CLIPlugin
    """
    resources: list[CLIPlugin] = []
    for entry in sorted(directory.iterdir()):
        if not entry.is_file() or entry.suffix not in MANIFEST_SUFFIXES:
            continue
        try:
            documents = list(yaml.safe_load_all(entry.read_text(encoding="utf-8")))
        except (yaml.YAMLError, OSError) as e:
            raise UpstreamError(f"could not read plugin manifest: {e}", str(entry)) from e

        for doc in documents:
            if not isinstance(doc, dict):
                continue
            if doc.get("kind", "CLIPlugin") != "CLIPlugin":
                logger.debug(f"Ignoring {doc.get('kind')} document in {entry}")
                continue
            try:
                resources.append(CLIPlugin.model_validate(doc))
            except ValidationError as e:
                raise UpstreamError(f"invalid CLIPlugin manifest: {e}", str(entry)) from e
    return resources


class LocalDiscovery:
    """Discovers plugins from manifests in a directory."""

    def __init__(self, name: str, path: str, root: Optional[Path] = None):
        self._name = name
        self.path = path
        self.root = root

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return DiscoveryType.LOCAL.value

    @property
    def directory(self) -> Path:
        """The manifest directory; relative paths are resolved against ``root``."""
        path = Path(self.path).expanduser()
        if not path.is_absolute() and self.root is not None:
            path = self.root / path
        return path

    def manifest(self) -> list[Discovered]:
        directory = self.directory
        if not directory.is_dir():
            logger.warning(
                f"Local discovery directory not found, skipping: {directory}",
                extra={"discovery": self._name},
            )
            return []
        plugins = [discovered_from_cli_plugin(r) for r in load_cli_plugins(directory)]
        return stamp(plugins, self._name, self.type)

    async def list(self) -> list[Discovered]:
        return await asyncio.to_thread(self.manifest)
