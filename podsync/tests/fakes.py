"""
In-memory test doubles.

FakeCluster stores real kubernetes model objects and raises real
ApiExceptions, so code under test classifies errors exactly as it would
against an API server.
"""

import copy
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from podsync.core.interfaces import ClusterClient, EventRecorder


def not_found() -> ApiException:
    return ApiException(status=404, reason="Not Found")


def conflict() -> ApiException:
    return ApiException(status=409, reason="Conflict")


def already_exists() -> ApiException:
    return ApiException(status=409, reason="AlreadyExists")


def server_error() -> ApiException:
    return ApiException(status=500, reason="Internal Server Error")


class FakeCluster(ClusterClient):
    """
    Pods, nodes and services of one API server.

    ``fail(method, exc, times)`` makes the next ``times`` calls of a method
    raise ``exc``. ``calls`` records every call in order.
    """

    def __init__(self):
        self.pods: Dict[Tuple[str, str], client.V1Pod] = {}
        self.nodes: Dict[str, client.V1Node] = {}
        self.services: Dict[Tuple[str, str], client.V1Service] = {}
        self.calls: List[tuple] = []
        self.bind_takes_effect = True
        self._failures: Dict[str, List[ApiException]] = {}

    # test setup helpers

    def add_pod(self, pod: client.V1Pod) -> client.V1Pod:
        self.pods[(pod.metadata.namespace, pod.metadata.name)] = copy.deepcopy(pod)
        return pod

    def add_node(self, name: str) -> None:
        self.nodes[name] = client.V1Node(metadata=client.V1ObjectMeta(name=name))

    def add_service(self, namespace: str, name: str, cluster_ip: str, ports=None) -> None:
        self.services[(namespace, name)] = client.V1Service(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            spec=client.V1ServiceSpec(cluster_ip=cluster_ip, ports=ports or []),
        )

    def fail(self, method: str, exc: ApiException, times: int = 1) -> None:
        self._failures.setdefault(method, []).extend([exc] * times)

    def calls_to(self, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == method]

    def _call(self, method: str, *args) -> None:
        self.calls.append((method,) + args)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def _stored(self, namespace: str, name: str) -> client.V1Pod:
        pod = self.pods.get((namespace, name))
        if pod is None:
            raise not_found()
        return pod

    # ClusterClient

    def get_pod(self, namespace: str, name: str) -> client.V1Pod:
        self._call("get_pod", namespace, name)
        return copy.deepcopy(self._stored(namespace, name))

    def list_pods(self, namespace: str) -> List[client.V1Pod]:
        self._call("list_pods", namespace)
        return [copy.deepcopy(p) for (ns, _), p in sorted(self.pods.items()) if ns == namespace]

    def create_pod(self, pod: client.V1Pod) -> client.V1Pod:
        self._call("create_pod", pod)
        key = (pod.metadata.namespace, pod.metadata.name)
        if key in self.pods:
            raise already_exists()
        self.pods[key] = copy.deepcopy(pod)
        return copy.deepcopy(pod)

    def update_pod(self, pod: client.V1Pod) -> client.V1Pod:
        self._call("update_pod", pod)
        stored = self._stored(pod.metadata.namespace, pod.metadata.name)
        updated = copy.deepcopy(pod)
        # status and ephemeral containers only change through their subresources
        updated.status = stored.status
        updated.spec.ephemeral_containers = stored.spec.ephemeral_containers
        self.pods[(pod.metadata.namespace, pod.metadata.name)] = updated
        return copy.deepcopy(updated)

    def update_pod_status(self, pod: client.V1Pod) -> client.V1Pod:
        self._call("update_pod_status", pod)
        stored = self._stored(pod.metadata.namespace, pod.metadata.name)
        stored.status = copy.deepcopy(pod.status)
        return copy.deepcopy(stored)

    def delete_pod(
        self,
        namespace: str,
        name: str,
        grace_period_seconds: Optional[int] = None,
        uid: Optional[str] = None,
    ) -> None:
        self._call("delete_pod", namespace, name, grace_period_seconds, uid)
        stored = self._stored(namespace, name)
        if uid is not None and stored.metadata.uid != uid:
            raise conflict()
        del self.pods[(namespace, name)]

    def bind_pod(self, namespace: str, name: str, node_name: str) -> None:
        self._call("bind_pod", namespace, name, node_name)
        stored = self._stored(namespace, name)
        if self.bind_takes_effect:
            stored.spec.node_name = node_name

    def update_ephemeral_containers(self, namespace, name, containers) -> client.V1Pod:
        self._call("update_ephemeral_containers", namespace, name, containers)
        stored = self._stored(namespace, name)
        stored.spec.ephemeral_containers = copy.deepcopy(containers)
        return copy.deepcopy(stored)

    def get_node(self, name: str) -> client.V1Node:
        self._call("get_node", name)
        if name not in self.nodes:
            raise not_found()
        return self.nodes[name]

    def get_service(self, namespace: str, name: str) -> client.V1Service:
        self._call("get_service", namespace, name)
        if (namespace, name) not in self.services:
            raise not_found()
        return self.services[(namespace, name)]

    def list_services(self, namespace: str) -> List[client.V1Service]:
        self._call("list_services", namespace)
        return [s for (ns, _), s in sorted(self.services.items()) if ns == namespace]


class FakeRecorder(EventRecorder):

    def __init__(self):
        self.events: List[Tuple[str, str, str]] = []

    def event(self, obj, event_type: str, reason: str, message: str) -> None:
        self.events.append((event_type, reason, message))


class FakeClock:
    """Injectable monotonic clock; sleep() advances it."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def make_pod(
    name: str = "web-0",
    namespace: str = "tenant-a",
    uid: str = "uid-virtual",
    node_name: Optional[str] = None,
    containers: Optional[List[client.V1Container]] = None,
    volumes: Optional[List[client.V1Volume]] = None,
    status: Optional[client.V1PodStatus] = None,
    **spec_fields,
) -> client.V1Pod:
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, uid=uid, labels={"app": "web"}),
        spec=client.V1PodSpec(
            node_name=node_name,
            containers=containers or [client.V1Container(name="app", image="nginx:1.25")],
            volumes=volumes,
            **spec_fields,
        ),
        status=status,
    )


def terminating(pod: client.V1Pod, grace_period: Optional[int] = 30) -> client.V1Pod:
    pod.metadata.deletion_timestamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
    pod.metadata.deletion_grace_period_seconds = grace_period
    return pod
