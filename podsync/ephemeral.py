"""
Ephemeral container propagation (kubectl debug on a virtual Pod).
"""

import copy
import logging
from typing import List, Tuple

from kubernetes import client

from .core.errors import is_not_found
from .core.interfaces import ClusterClient, PodTranslator

logger = logging.getLogger(__name__)

KUBERNETES_SERVICE = ("default", "kubernetes")


def needs_ephemeral_sync(vpod: client.V1Pod, ppod: client.V1Pod) -> bool:
    """
    True when the virtual Pod declares ephemeral containers the physical
    Pod does not have yet (count, or name/image at the same index).

    An empty virtual list never triggers: ephemeral containers cannot be
    removed from a running Pod.
    """
    virtual = vpod.spec.ephemeral_containers
    if not virtual:
        return False
    physical = ppod.spec.ephemeral_containers or []
    if len(virtual) != len(physical):
        return True
    for vcontainer, pcontainer in zip(virtual, physical):
        if vcontainer.image != pcontainer.image:
            return True
        if vcontainer.name != pcontainer.name:
            return True
    return False


def add_ephemeral_container(physical_client: ClusterClient, ppod: client.V1Pod, vpod: client.V1Pod) -> client.V1Pod:
    """Write the virtual Pod's ephemeral containers to the physical Pod's subresource."""
    containers = copy.deepcopy(vpod.spec.ephemeral_containers or [])
    return physical_client.update_ephemeral_containers(
        ppod.metadata.namespace, ppod.metadata.name, containers
    )


class EphemeralContainerSync:
    """Translates and pushes ephemeral containers to the physical Pod."""

    def __init__(self, virtual_client: ClusterClient, physical_client: ClusterClient, translator: PodTranslator):
        self.virtual_client = virtual_client
        self.physical_client = physical_client
        self.translator = translator

    def sync(self, ppod: client.V1Pod, vpod: client.V1Pod, log=logger) -> None:
        kube_ip, services = self._service_context(vpod)
        service_env = self.translator.translate_services_to_env(
            vpod.spec.enable_service_links, services, kube_ip
        )
        for container in vpod.spec.ephemeral_containers:
            env, env_from = self.translator.translate_container_env(
                container.env, container.env_from, vpod, service_env
            )
            container.env = env
            container.env_from = env_from

        log.info(
            f"add {len(vpod.spec.ephemeral_containers)} ephemeral container(s) to "
            f"physical pod {ppod.metadata.namespace}/{ppod.metadata.name}"
        )
        add_ephemeral_container(self.physical_client, ppod, vpod)

    def _service_context(self, vpod: client.V1Pod) -> Tuple[str, List[client.V1Service]]:
        kube_ip = ""
        try:
            svc = self.virtual_client.get_service(*KUBERNETES_SERVICE)
            kube_ip = svc.spec.cluster_ip or ""
        except client.exceptions.ApiException as e:
            if not is_not_found(e):
                raise
        services = self.virtual_client.list_services(vpod.metadata.namespace)
        return kube_ip, services
