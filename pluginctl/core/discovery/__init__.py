"""
Plugin discovery.

create_discovery() builds the backend for a configured source;
discover_all() runs several backends concurrently and collects what each
one found, keeping one backend's failure from affecting the others.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

import httpx

from pluginctl.config import Settings, get_settings
from pluginctl.core.discovery.base import Discovery
from pluginctl.core.discovery.gcp import BucketReader, GCPDiscovery
from pluginctl.core.discovery.kubernetes import ClusterClient, KubernetesDiscovery
from pluginctl.core.discovery.local import LocalDiscovery
from pluginctl.core.discovery.oci import ImageFetcher, OCIDiscovery
from pluginctl.core.discovery.rest import RESTDiscovery
from pluginctl.lib.typed_errors import BackendUnavailable
from pluginctl.models.discovery import Discovered, PluginDiscovery

logger = logging.getLogger(__name__)

__all__ = [
    "Discovery",
    "DiscoveryResult",
    "create_discovery",
    "discover_all",
]


def create_discovery(
    source: PluginDiscovery,
    settings: Optional[Settings] = None,
    cluster_client: Optional[ClusterClient] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    image_fetcher: Optional[ImageFetcher] = None,
    bucket_reader: Optional[BucketReader] = None,
) -> Discovery:
    """Build the discovery backend for a configured source."""
    settings = settings or get_settings()

    if source.oci is not None:
        return OCIDiscovery(source.oci.name, source.oci.image, fetcher=image_fetcher)
    if source.local is not None:
        return LocalDiscovery(source.local.name, source.local.path, root=settings.discovery_root)
    if source.kubernetes is not None:
        return KubernetesDiscovery(
            source.kubernetes.name,
            kubeconfig_path=source.kubernetes.path,
            kubecontext=source.kubernetes.context,
            client=cluster_client,
        )
    if source.rest is not None:
        return RESTDiscovery(
            source.rest.name,
            source.rest.endpoint,
            source.rest.base_path,
            client=http_client,
            timeout=settings.discovery_timeout,
        )
    if source.gcp is not None:
        return GCPDiscovery(
            source.gcp.name,
            source.gcp.bucket,
            source.gcp.manifest_path,
            reader=bucket_reader,
        )
    raise ValueError("Discovery source has no type configured")


@dataclass
class DiscoveryResult:
    """Outcome of running several discoveries."""

    plugins: list[Discovered] = field(default_factory=list)
    # Discovery name -> the exception that made it fail
    errors: dict[str, BaseException] = field(default_factory=dict)
    # Discovery name -> why it had nothing to offer (not a failure)
    unavailable: dict[str, BackendUnavailable] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


async def discover_all(discoveries: Sequence[Discovery]) -> DiscoveryResult:
    """Run every discovery concurrently and merge the results.

    Plugins keep the order of ``discoveries``. Cancelling the caller cancels
    all running discoveries and propagates.
    """
    outcomes = await asyncio.gather(
        *(d.list() for d in discoveries),
        return_exceptions=True,
    )

    result = DiscoveryResult()
    for discovery, outcome in zip(discoveries, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            logger.warning(
                f"Discovery '{discovery.name}' failed: {outcome}",
                extra={"discovery": discovery.name},
            )
            result.errors[discovery.name] = outcome
            continue

        diagnostic = getattr(discovery, "diagnostic", None)
        if diagnostic is not None:
            result.unavailable[discovery.name] = diagnostic
        result.plugins.extend(outcome)

    logger.debug(
        f"Discovered {len(result.plugins)} plugins from {len(discoveries)} sources "
        f"({len(result.errors)} failed)"
    )
    return result
