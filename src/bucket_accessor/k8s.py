# src/bucket_accessor/k8s.py

"""
Optional mirror of the migration global state into a Kubernetes config map,
so that the workers of a migration can find the SSTable descriptors without
reading the global state document first.
"""

import logging

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from .exceptions import ConfigMapError
from .schemas import MigrationGlobalState

logger = logging.getLogger(__name__)


def config_map_entries(state: MigrationGlobalState) -> dict[str, str]:
    """The two config map entries that summarise a migration."""
    return {
        f"sstable-descriptor-key-prefix-{state.migration_id}": state.sstable_descriptor_key_prefix,
        f"total-sstable-count-{state.migration_id}": str(state.sstable_count),
    }


class ConfigMapPublisher:
    """Merges entries into an existing config map."""

    def __init__(self, name: str, namespace: str, core_api: k8s_client.CoreV1Api):
        self._name = name
        self._namespace = namespace
        self._api = core_api

    @classmethod
    def in_cluster(cls, name: str, namespace: str) -> "ConfigMapPublisher":
        """Builds a publisher from the service account of the running pod."""
        try:
            k8s_config.load_incluster_config()
        except ConfigException as e:
            raise ConfigMapError(
                namespace, name, f"in-cluster configuration unavailable: {e}"
            ) from e
        return cls(name, namespace, k8s_client.CoreV1Api())

    def publish(self, entries: dict[str, str]) -> dict[str, str]:
        """
        Writes *entries* into the config map, leaving its other keys alone.
        Returns the values the API server reports back for those entries.
        """
        try:
            config_map = self._api.read_namespaced_config_map(
                name=self._name, namespace=self._namespace
            )
        except ApiException as e:
            raise ConfigMapError(
                self._namespace,
                self._name,
                f"retrieval failed: {e.reason}",
                context={"status": e.status},
            ) from e

        data = dict(config_map.data or {})
        data.update(entries)
        config_map.data = data

        try:
            updated = self._api.replace_namespaced_config_map(
                name=self._name, namespace=self._namespace, body=config_map
            )
        except ApiException as e:
            raise ConfigMapError(
                self._namespace,
                self._name,
                f"update failed: {e.reason}",
                context={"status": e.status},
            ) from e

        written = {k: (updated.data or {}).get(k, "") for k in entries}
        logger.info(
            "Written state to k8s configMap",
            extra={
                "namespace": self._namespace,
                "config_map": self._name,
                "entries": written,
            },
        )
        return written
