"""
Abstract collaborator interfaces used by the reconcile engine.

The engine only depends on these contracts; the operator injects concrete
implementations (kubernetes API clients, the default translator, ...).

All cluster operations raise ``kubernetes.client.exceptions.ApiException``
on API errors so callers can classify them with ``podsync.core.errors``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from kubernetes import client


class ClusterClient(ABC):
    """
    Pod-centric view of one API server (virtual or physical).
    """

    @abstractmethod
    def get_pod(self, namespace: str, name: str) -> client.V1Pod:
        ...

    @abstractmethod
    def list_pods(self, namespace: str) -> List[client.V1Pod]:
        ...

    @abstractmethod
    def create_pod(self, pod: client.V1Pod) -> client.V1Pod:
        ...

    @abstractmethod
    def update_pod(self, pod: client.V1Pod) -> client.V1Pod:
        ...

    @abstractmethod
    def update_pod_status(self, pod: client.V1Pod) -> client.V1Pod:
        ...

    @abstractmethod
    def delete_pod(
        self,
        namespace: str,
        name: str,
        grace_period_seconds: Optional[int] = None,
        uid: Optional[str] = None,
    ) -> None:
        """
        Delete a Pod.

        Args:
            grace_period_seconds: None keeps the server default
            uid: When set, the delete only applies to the object with this UID
        """
        ...

    @abstractmethod
    def bind_pod(self, namespace: str, name: str, node_name: str) -> None:
        ...

    @abstractmethod
    def update_ephemeral_containers(
        self, namespace: str, name: str, containers: List[client.V1EphemeralContainer]
    ) -> client.V1Pod:
        ...

    @abstractmethod
    def get_node(self, name: str) -> client.V1Node:
        ...

    @abstractmethod
    def get_service(self, namespace: str, name: str) -> client.V1Service:
        ...

    @abstractmethod
    def list_services(self, namespace: str) -> List[client.V1Service]:
        ...


class EventRecorder(ABC):
    """Records Kubernetes events against an object."""

    @abstractmethod
    def event(self, obj, event_type: str, reason: str, message: str) -> None:
        ...

    def eventf(self, obj, event_type: str, reason: str, fmt: str, *args) -> None:
        self.event(obj, event_type, reason, fmt % args if args else fmt)


class PodTranslator(ABC):
    """Turns virtual Pods into physical ones and computes updates."""

    @abstractmethod
    def physical_name(self, namespace: str, name: str) -> Tuple[str, str]:
        """Return (physical namespace, physical name) for a virtual key."""
        ...

    @abstractmethod
    def translate(self, vpod: client.V1Pod) -> client.V1Pod:
        ...

    @abstractmethod
    def translate_update(self, ppod: client.V1Pod, vpod: client.V1Pod) -> Optional[client.V1Pod]:
        """Return an updated copy of ``ppod`` or None when nothing changed."""
        ...

    @abstractmethod
    def translate_services_to_env(
        self,
        enable_service_links: Optional[bool],
        services: List[client.V1Service],
        kube_ip: str,
    ) -> Dict[str, str]:
        ...

    @abstractmethod
    def translate_container_env(
        self,
        env: Optional[List[client.V1EnvVar]],
        env_from: Optional[List[client.V1EnvFromSource]],
        vpod: client.V1Pod,
        service_env: Dict[str, str],
    ) -> Tuple[List[client.V1EnvVar], Optional[List[client.V1EnvFromSource]]]:
        ...


class ConditionMerger(ABC):
    """Owns readiness-gate conditions, which flow virtual -> physical."""

    @abstractmethod
    def update_conditions(self, ppod: client.V1Pod, vpod: client.V1Pod) -> bool:
        """Return True if the physical Pod was written."""
        ...


class SecurityValidator(ABC):

    @abstractmethod
    def is_valid(self, vpod: client.V1Pod) -> bool:
        ...


class SyncWriter(ABC):
    """Performs the final API write once a desired physical Pod is computed."""

    @abstractmethod
    def sync_down_create(self, vpod: client.V1Pod, ppod: client.V1Pod) -> None:
        ...

    @abstractmethod
    def sync_down_update(self, vpod: client.V1Pod, ppod: client.V1Pod) -> None:
        ...
