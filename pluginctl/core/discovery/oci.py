"""
Discovery from an OCI discovery image.

The image carries CLIPlugin manifests. It is unpacked into a temporary
directory by an ImageFetcher and then read like a local discovery directory.
"""

import asyncio
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from pluginctl.core.discovery.base import discovered_from_cli_plugin, stamp
from pluginctl.core.discovery.local import load_cli_plugins
from pluginctl.lib.typed_errors import UpstreamError
from pluginctl.models.discovery import Discovered, DiscoveryType

logger = logging.getLogger(__name__)

PULL_TIMEOUT = 60


class ImageFetcher(Protocol):
    async def fetch(self, image: str, dest: Path) -> None:
        """Unpack the contents of ``image`` into the existing directory ``dest``."""
        ...


class ImgpkgImageFetcher:
    """Pulls images with the imgpkg CLI."""

    def __init__(self, executable: str = "imgpkg", timeout: float = PULL_TIMEOUT):
        self.executable = executable
        self.timeout = timeout

    async def fetch(self, image: str, dest: Path) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable, "pull", "-i", image, "-o", str(dest),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise UpstreamError(f"could not run {self.executable}: {e}", image) from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await _terminate(proc)
            raise UpstreamError(f"pulling {image} timed out after {self.timeout}s", image) from e
        except BaseException:
            # Cancelled or interrupted: never leave imgpkg running behind us
            await _terminate(proc)
            raise

        if proc.returncode != 0:
            error_msg = stderr.decode().strip() if stderr else "Unknown error"
            raise UpstreamError(f"image pull failed: {error_msg}", image)


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await asyncio.shield(proc.wait())


class OCIDiscovery:
    """Discovers plugins from the manifests packaged in an OCI image."""

    def __init__(self, name: str, image: str, fetcher: Optional[ImageFetcher] = None):
        self._name = name
        self.image = image
        self.fetcher = fetcher or ImgpkgImageFetcher()

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return DiscoveryType.OCI.value

    async def list(self) -> list[Discovered]:
        tmp_dir = Path(tempfile.mkdtemp(prefix=f"pluginctl-discovery-{self._name}-"))
        try:
            logger.debug(f"Fetching discovery image {self.image}", extra={"discovery": self._name})
            await self.fetcher.fetch(self.image, tmp_dir)
            resources = await asyncio.to_thread(load_cli_plugins, tmp_dir)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        plugins = [discovered_from_cli_plugin(r) for r in resources]
        return stamp(plugins, self._name, self.type)
