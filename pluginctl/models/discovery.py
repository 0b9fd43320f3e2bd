"""
Discovery models.

Raw listings come in two shapes:
  CLIPlugin     the custom resource served by a cluster, and the YAML
                documents found in local directories and OCI discovery images
  RESTPlugin    entries of the {"plugins": [...]} envelope of a REST endpoint

Both normalize into Discovered, the backend-agnostic record used for
install and version decisions. PluginDiscovery is the configuration of one
discovery source.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class DiscoveryType(str, Enum):
    """Backend type tag stamped on every Discovered record."""

    LOCAL = "local"
    OCI = "oci"
    KUBERNETES = "kubernetes"
    REST = "rest"
    GCP = "gcp-legacy"


class Artifact(BaseModel):
    """Where to fetch one OS/arch build of a plugin version."""

    image: str = ""  # OCI image reference
    uri: str = ""  # Direct download URI
    digest: str = ""
    type: str = ""
    os: str = ""
    arch: str = ""

    model_config = {"extra": "ignore"}


# Version -> artifacts for that version
Artifacts = dict[str, list[Artifact]]


class Discovered(BaseModel):
    """A discoverable plugin and the versions a source offers for it."""

    name: str
    description: str = ""
    recommended_version: str = ""
    installed_version: str = ""  # Filled in by callers comparing against the catalog
    optional: bool = False
    target: str = ""
    supported_versions: list[str] = Field(default_factory=list)  # Ascending, unique
    distribution: Artifacts = Field(default_factory=dict)
    source: str = ""  # Name of the discovery that produced this record
    discovery_type: str = ""
    scope: str = ""
    status: str = ""
    context_name: str = ""

    def artifact(self, version: str, os: str, arch: str) -> Optional[Artifact]:
        """Return the artifact for a version and platform, if published."""
        for candidate in self.distribution.get(version, []):
            if candidate.os == os and candidate.arch == arch:
                return candidate
        return None


# ---------------------------------------------------------------------------
# Raw listings
# ---------------------------------------------------------------------------

class ObjectMeta(BaseModel):
    name: str = ""
    namespace: str = ""

    model_config = {"extra": "ignore"}


class CLIPluginSpec(BaseModel):
    description: str = ""
    recommended_version: str = Field(default="", alias="recommendedVersion")
    optional: bool = False
    target: str = ""
    artifacts: Artifacts = Field(default_factory=dict)

    model_config = {"extra": "ignore", "populate_by_name": True}


class CLIPlugin(BaseModel):
    """The CLIPlugin custom resource (cli.tanzu.vmware.com/v1alpha1)."""

    api_version: str = Field(default="cli.tanzu.vmware.com/v1alpha1", alias="apiVersion")
    kind: str = "CLIPlugin"
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: CLIPluginSpec = Field(default_factory=CLIPluginSpec)

    model_config = {"extra": "ignore", "populate_by_name": True}

    @property
    def name(self) -> str:
        return self.metadata.name


class RESTPlugin(BaseModel):
    """One plugin entry returned by a REST discovery endpoint."""

    name: str = ""
    description: str = ""
    recommended_version: str = Field(default="", alias="recommendedVersion")
    artifacts: Artifacts = Field(default_factory=dict)
    optional: bool = False
    target: str = ""

    model_config = {"extra": "ignore", "populate_by_name": True}


class ListPluginsResponse(BaseModel):
    """Envelope of the REST list-plugins API."""

    plugins: list[RESTPlugin] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


# ---------------------------------------------------------------------------
# Discovery source configuration
# ---------------------------------------------------------------------------

class OCIDiscoverySource(BaseModel):
    name: str
    image: str


class LocalDiscoverySource(BaseModel):
    name: str
    path: str


class KubernetesDiscoverySource(BaseModel):
    name: str
    path: str = ""  # kubeconfig path
    context: str = ""  # kubeconfig context


class RESTDiscoverySource(BaseModel):
    name: str
    endpoint: str
    base_path: str = Field(default="", alias="basePath")

    model_config = {"populate_by_name": True}


class GCPDiscoverySource(BaseModel):
    """Deprecated bucket-manifest discovery."""

    name: str
    bucket: str
    manifest_path: str = Field(default="", alias="manifestPath")

    model_config = {"populate_by_name": True}


class PluginDiscovery(BaseModel):
    """Configuration of one discovery source; exactly one variant is set."""

    oci: Optional[OCIDiscoverySource] = None
    local: Optional[LocalDiscoverySource] = None
    kubernetes: Optional[KubernetesDiscoverySource] = None
    rest: Optional[RESTDiscoverySource] = None
    gcp: Optional[GCPDiscoverySource] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "PluginDiscovery":
        configured = [
            t for t in ("oci", "local", "kubernetes", "rest", "gcp")
            if getattr(self, t) is not None
        ]
        if len(configured) != 1:
            raise ValueError(
                f"A discovery source must configure exactly one type, got: {configured or 'none'}"
            )
        return self
