"""
Legacy discovery from a plugin manifest stored in a GCP bucket.

The manifest is YAML:

    plugins:
      - name: cluster
        description: Kubernetes cluster operations
        target: kubernetes
        recommendedVersion: v1.2.0
        optional: false
        versions: [v1.1.0, v1.2.0]
        artifacts:
          - {os: linux, arch: amd64}
          - {os: darwin, arch: arm64}

Binaries live next to the manifest at
{manifest dir}/{name}/{version}/tanzu-{name}-{os}_{arch}[.exe].
"""

import logging
import posixpath
from typing import Optional, Protocol

import httpx
import yaml
from pydantic import BaseModel, Field, ValidationError

from pluginctl.core.discovery.base import sorted_supported_versions, stamp
from pluginctl.lib.typed_errors import UpstreamError
from pluginctl.models.discovery import Artifact, Discovered, DiscoveryType
from pluginctl.models.plugin import normalize_target

logger = logging.getLogger(__name__)

GCS_BASE_URL = "https://storage.googleapis.com"
DEFAULT_MANIFEST_PATH = "manifest.yaml"


class BucketReader(Protocol):
    async def read(self, bucket: str, object_path: str) -> bytes:
        ...


class HTTPBucketReader:
    """Reads objects of publicly readable buckets over HTTPS."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 5.0):
        self._client = client
        self.timeout = timeout

    async def read(self, bucket: str, object_path: str) -> bytes:
        url = object_url(bucket, object_path)
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise UpstreamError(f"could not read {object_path} from bucket {bucket}: {e}", url) from e

        if not response.is_success:
            raise UpstreamError(
                f"could not read {object_path} from bucket {bucket}, status code: {response.status_code}",
                url,
                response.status_code,
            )
        return response.content


def object_url(bucket: str, object_path: str) -> str:
    return f"{GCS_BASE_URL}/{bucket}/{object_path.lstrip('/')}"


class ManifestPlatform(BaseModel):
    os: str
    arch: str

    model_config = {"extra": "ignore"}


class ManifestPlugin(BaseModel):
    name: str
    description: str = ""
    target: str = ""
    recommended_version: str = Field(default="", alias="recommendedVersion")
    optional: bool = False
    versions: list[str] = Field(default_factory=list)
    artifacts: list[ManifestPlatform] = Field(default_factory=list)

    model_config = {"extra": "ignore", "populate_by_name": True}


class Manifest(BaseModel):
    plugins: list[ManifestPlugin] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class GCPDiscovery:
    """Discovers plugins from a bucket manifest. Deprecated."""

    def __init__(
        self,
        name: str,
        bucket: str,
        manifest_path: str = "",
        reader: Optional[BucketReader] = None,
    ):
        self._name = name
        self.bucket = bucket
        self.manifest_path = manifest_path or DEFAULT_MANIFEST_PATH
        self.reader = reader or HTTPBucketReader()

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return DiscoveryType.GCP.value

    def artifact_uri(self, plugin: str, version: str, os: str, arch: str) -> str:
        binary = f"tanzu-{plugin}-{os}_{arch}"
        if os == "windows":
            binary += ".exe"
        manifest_dir = posixpath.dirname(self.manifest_path.lstrip("/"))
        return object_url(self.bucket, posixpath.join(manifest_dir, plugin, version, binary))

    async def fetch_manifest(self) -> Manifest:
        raw = await self.reader.read(self.bucket, self.manifest_path)
        url = object_url(self.bucket, self.manifest_path)
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise UpstreamError(f"could not parse plugin manifest: {e}", url) from e
        if data is None:
            return Manifest()
        try:
            return Manifest.model_validate(data)
        except ValidationError as e:
            raise UpstreamError(f"invalid plugin manifest: {e}", url) from e

    def normalize(self, entry: ManifestPlugin) -> Discovered:
        versions = sorted_supported_versions(entry.name, entry.versions)
        distribution = {
            version: [
                Artifact(
                    uri=self.artifact_uri(entry.name, version, p.os, p.arch),
                    os=p.os,
                    arch=p.arch,
                )
                for p in entry.artifacts
            ]
            for version in versions
        }
        return Discovered(
            name=entry.name,
            description=entry.description,
            recommended_version=entry.recommended_version,
            optional=entry.optional,
            target=normalize_target(entry.target),
            supported_versions=versions,
            distribution=distribution,
        )

    async def list(self) -> list[Discovered]:
        logger.warning(
            f"Discovery '{self._name}' uses the deprecated GCP bucket manifest format",
            extra={"discovery": self._name},
        )
        manifest = await self.fetch_manifest()
        plugins = [self.normalize(entry) for entry in manifest.plugins]
        return stamp(plugins, self._name, self.type)
