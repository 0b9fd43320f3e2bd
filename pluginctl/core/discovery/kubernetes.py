"""
Context-aware discovery from CLIPlugin resources on a Kubernetes cluster.

Clusters without the CLIPlugin CRD are normal: discovery returns no plugins
and keeps a BackendUnavailable diagnostic instead of failing.
"""

import asyncio
import logging
from typing import Optional, Protocol

from pluginctl.core.discovery.base import discovered_from_cli_plugin, stamp
from pluginctl.lib.typed_errors import BackendUnavailable
from pluginctl.models.discovery import CLIPlugin, Discovered, DiscoveryType

logger = logging.getLogger(__name__)


class ClusterClient(Protocol):
    """The parts of a cluster connection discovery needs."""

    def verify_resource_type_present(self) -> bool:
        """True if the CLIPlugin CRD is installed."""
        ...

    def list_plugin_resources(self) -> list[CLIPlugin]:
        ...

    def get_image_repository_override(self) -> dict[str, str]:
        """Original registry -> override registry."""
        ...


class KubernetesDiscovery:
    """Discovers plugins from the CLIPlugin resources of one cluster."""

    def __init__(
        self,
        name: str,
        kubeconfig_path: str = "",
        kubecontext: str = "",
        client: Optional[ClusterClient] = None,
    ):
        self._name = name
        self.kubeconfig_path = kubeconfig_path
        self.kubecontext = kubecontext
        self._client = client
        self.diagnostic: Optional[BackendUnavailable] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return DiscoveryType.KUBERNETES.value

    def _cluster_client(self) -> ClusterClient:
        if self._client is None:
            from pluginctl.core.cluster import KubernetesClusterClient

            self._client = KubernetesClusterClient(self.kubeconfig_path, self.kubecontext)
        return self._client

    def get_discovered_plugins(self, client: ClusterClient) -> list[Discovered]:
        """List and normalize the cluster's CLIPlugin resources.

        Returns an empty list when the CRD is missing or its presence cannot
        be verified.

        Raises:
            VersionParseError: If a resource publishes an invalid version
        """
        self.diagnostic = None

        reason = "CLIPlugin CRD not present on the cluster"
        try:
            exists = client.verify_resource_type_present()
        except Exception as e:
            exists = False
            reason = f"{reason}: {e}"

        if not exists:
            self.diagnostic = BackendUnavailable(self._name, reason)
            logger.debug(
                f"Skipping context-aware plugin discovery: {reason}",
                extra={"discovery": self._name},
            )
            return []

        resources = client.list_plugin_resources()

        try:
            overrides = client.get_image_repository_override()
        except Exception as e:
            logger.info(
                f"Unable to get image repository override information for some of the plugins: {e}",
                extra={"discovery": self._name},
            )
            overrides = {}

        plugins = [discovered_from_cli_plugin(resource, overrides) for resource in resources]
        return stamp(plugins, self._name, self.type)

    async def list(self) -> list[Discovered]:
        client = await asyncio.to_thread(self._cluster_client)
        return await asyncio.to_thread(self.get_discovered_plugins, client)
