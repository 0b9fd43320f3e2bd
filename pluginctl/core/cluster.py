"""
Cluster connection for context-aware discovery, backed by the kubernetes client.

Reads three things from the cluster:
- whether the CLIPlugin CRD is installed
- all CLIPlugin resources (cluster scoped)
- image repository overrides, published as ConfigMaps in tanzu-cli-system
  labelled cli.tanzu.vmware.com/cliplugin-image-repository-override, whose
  imageRepositoryMap key holds a YAML map of original -> override registry
"""

import logging

import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from pluginctl.models.discovery import CLIPlugin

logger = logging.getLogger(__name__)

CLI_PLUGIN_GROUP = "cli.tanzu.vmware.com"
CLI_PLUGIN_VERSION = "v1alpha1"
CLI_PLUGIN_PLURAL = "cliplugins"
CLI_PLUGIN_CRD_NAME = f"{CLI_PLUGIN_PLURAL}.{CLI_PLUGIN_GROUP}"

IMAGE_REPOSITORY_OVERRIDE_NAMESPACE = "tanzu-cli-system"
IMAGE_REPOSITORY_OVERRIDE_LABEL = "cli.tanzu.vmware.com/cliplugin-image-repository-override"
IMAGE_REPOSITORY_MAP_KEY = "imageRepositoryMap"


class KubernetesClusterClient:
    """ClusterClient for one kubeconfig context."""

    def __init__(self, kubeconfig_path: str = "", context: str = ""):
        api_client = config.new_client_from_config(
            config_file=kubeconfig_path or None,
            context=context or None,
        )
        self._extensions = client.ApiextensionsV1Api(api_client)
        self._custom_objects = client.CustomObjectsApi(api_client)
        self._core = client.CoreV1Api(api_client)

    def verify_resource_type_present(self) -> bool:
        try:
            self._extensions.read_custom_resource_definition(CLI_PLUGIN_CRD_NAME)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    def list_plugin_resources(self) -> list[CLIPlugin]:
        raw = self._custom_objects.list_cluster_custom_object(
            group=CLI_PLUGIN_GROUP,
            version=CLI_PLUGIN_VERSION,
            plural=CLI_PLUGIN_PLURAL,
        )
        return [CLIPlugin.model_validate(item) for item in raw.get("items", [])]

    def get_image_repository_override(self) -> dict[str, str]:
        try:
            config_maps = self._core.list_namespaced_config_map(
                IMAGE_REPOSITORY_OVERRIDE_NAMESPACE,
                label_selector=IMAGE_REPOSITORY_OVERRIDE_LABEL,
            )
        except ApiException as e:
            if e.status == 404:
                return {}
            raise

        overrides: dict[str, str] = {}
        for config_map in config_maps.items:
            raw = (config_map.data or {}).get(IMAGE_REPOSITORY_MAP_KEY)
            if not raw:
                continue
            mapping = yaml.safe_load(raw) or {}
            if not isinstance(mapping, dict):
                raise ValueError(
                    f"{IMAGE_REPOSITORY_MAP_KEY} in ConfigMap "
                    f"{config_map.metadata.name} is not a map"
                )
            overrides.update({str(k): str(v) for k, v in mapping.items()})
        return overrides
