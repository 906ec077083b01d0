"""
Cluster clients backed by the official kubernetes client.

The virtual and physical API servers each get their own ApiClient so the
two configurations never mix.
"""

import logging
from typing import List, Optional

from kubernetes import client, config

from podsync.core.interfaces import ClusterClient

from .metrics import track_node_bind

logger = logging.getLogger(__name__)

# bounds every single API call of a reconcile
REQUEST_TIMEOUT_SECONDS = 30


def new_api_client(kubeconfig: Optional[str] = None) -> client.ApiClient:
    """
    Build an ApiClient from a kubeconfig file, or from the in-cluster service
    account when no file is given.
    """
    if kubeconfig:
        return config.new_client_from_config(config_file=kubeconfig)

    configuration = client.Configuration()
    try:
        config.load_incluster_config(client_configuration=configuration)
    except config.ConfigException:
        config.load_kube_config(client_configuration=configuration)
    return client.ApiClient(configuration)


class KubeClusterClient(ClusterClient):
    """ClusterClient over CoreV1Api."""

    def __init__(self, api_client: client.ApiClient, name: str = "cluster"):
        self.name = name
        self.core_api = client.CoreV1Api(api_client)

    def get_pod(self, namespace: str, name: str) -> client.V1Pod:
        return self.core_api.read_namespaced_pod(name, namespace, _request_timeout=REQUEST_TIMEOUT_SECONDS)

    def list_pods(self, namespace: str) -> List[client.V1Pod]:
        return self.core_api.list_namespaced_pod(namespace, _request_timeout=REQUEST_TIMEOUT_SECONDS).items

    def create_pod(self, pod: client.V1Pod) -> client.V1Pod:
        return self.core_api.create_namespaced_pod(
            pod.metadata.namespace, pod, _request_timeout=REQUEST_TIMEOUT_SECONDS
        )

    def update_pod(self, pod: client.V1Pod) -> client.V1Pod:
        return self.core_api.replace_namespaced_pod(
            pod.metadata.name, pod.metadata.namespace, pod, _request_timeout=REQUEST_TIMEOUT_SECONDS
        )

    def update_pod_status(self, pod: client.V1Pod) -> client.V1Pod:
        return self.core_api.replace_namespaced_pod_status(
            pod.metadata.name, pod.metadata.namespace, pod, _request_timeout=REQUEST_TIMEOUT_SECONDS
        )

    def delete_pod(
        self,
        namespace: str,
        name: str,
        grace_period_seconds: Optional[int] = None,
        uid: Optional[str] = None,
    ) -> None:
        body = client.V1DeleteOptions(
            grace_period_seconds=grace_period_seconds,
            preconditions=client.V1Preconditions(uid=uid) if uid else None,
        )
        self.core_api.delete_namespaced_pod(name, namespace, body=body, _request_timeout=REQUEST_TIMEOUT_SECONDS)

    def bind_pod(self, namespace: str, name: str, node_name: str) -> None:
        body = client.V1Binding(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            target=client.V1ObjectReference(kind="Node", name=node_name, api_version="v1"),
        )
        # the response is a Status object the generated model cannot decode
        try:
            self.core_api.create_namespaced_pod_binding(
                name, namespace, body, _preload_content=False, _request_timeout=REQUEST_TIMEOUT_SECONDS
            )
        except client.exceptions.ApiException:
            track_node_bind("failed")
            raise
        track_node_bind("bound")

    def update_ephemeral_containers(
        self, namespace: str, name: str, containers: List[client.V1EphemeralContainer]
    ) -> client.V1Pod:
        serialized = self.core_api.api_client.sanitize_for_serialization(containers)
        body = {"spec": {"ephemeralContainers": serialized}}
        return self.core_api.patch_namespaced_pod_ephemeralcontainers(
            name, namespace, body, _request_timeout=REQUEST_TIMEOUT_SECONDS
        )

    def get_node(self, name: str) -> client.V1Node:
        return self.core_api.read_node(name, _request_timeout=REQUEST_TIMEOUT_SECONDS)

    def get_service(self, namespace: str, name: str) -> client.V1Service:
        return self.core_api.read_namespaced_service(name, namespace, _request_timeout=REQUEST_TIMEOUT_SECONDS)

    def list_services(self, namespace: str) -> List[client.V1Service]:
        return self.core_api.list_namespaced_service(namespace, _request_timeout=REQUEST_TIMEOUT_SECONDS).items
