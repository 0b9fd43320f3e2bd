"""
Installed plugin models.

A PluginInfo describes one installed plugin binary. It is stored in the
catalog cache under its installation path, so field aliases are the
camelCase keys used in catalog.yaml.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Target(str, Enum):
    """Namespace tag distinguishing plugin kinds."""

    GLOBAL = "global"
    KUBERNETES = "kubernetes"
    MISSION_CONTROL = "mission-control"
    OPERATIONS = "operations"
    # Plugins installed before targets existed, or when a target meant
    # "global or kubernetes", were recorded with an empty target.
    UNKNOWN = ""


_TARGET_ALIASES: dict[str, str] = {
    "k8s": Target.KUBERNETES.value,
    "tmc": Target.MISSION_CONTROL.value,
    "ops": Target.OPERATIONS.value,
    "unknown": Target.UNKNOWN.value,
}


def normalize_target(value: Optional[str]) -> str:
    """Map a target string (including short aliases) to its canonical form.

    Empty/None becomes the unknown target (""); unrecognised values are kept,
    lowercased.
    """
    if not value:
        return Target.UNKNOWN.value
    if isinstance(value, Target):
        return value.value
    lowered = value.strip().lower()
    return _TARGET_ALIASES.get(lowered, lowered)


class PluginInfo(BaseModel):
    """Identity and installation record for one installed plugin version."""

    name: str
    description: str = ""
    version: str = ""
    build_sha: str = Field(default="", alias="buildSHA")
    digest: str = ""
    group: str = ""
    doc_url: str = Field(default="", alias="docURL")
    hidden: bool = False
    completion_type: int = Field(default=0, alias="completionType")
    aliases: list[str] = Field(default_factory=list)
    installation_path: str = Field(alias="installationPath")  # Absolute path on disk
    discovery: str = ""  # Discovery source the binary was installed from
    scope: str = ""
    status: str = ""
    discovered_recommended_version: str = Field(default="", alias="discoveredRecommendedVersion")
    target: str = ""
    default_feature_flags: dict[str, bool] = Field(
        default_factory=dict, alias="defaultFeatureFlags"
    )

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("target", mode="before")
    @classmethod
    def _canonical_target(cls, v: Optional[str]) -> str:
        return normalize_target(v)
