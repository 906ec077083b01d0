"""
Default Pod translator.

Maps a virtual Pod into the tenant's target namespace on the host cluster,
rewrites what only makes sense inside the virtual API (object identity,
service environment, field references to the Pod's own metadata) and
computes spec updates that flow from the virtual Pod to the physical one.
"""

import copy
import hashlib
import logging
from typing import Dict, List, Optional, Tuple

from kubernetes import client

from ..core.constants import (
    HOSTS_REWRITE_CONTAINER_NAME,
    HOSTS_REWRITE_IMAGE,
    HOSTS_REWRITTEN_ANNOTATION,
    MANAGED_BY_LABEL,
    NAME_ANNOTATION,
    NAMESPACE_ANNOTATION,
    NAMESPACE_LABEL,
    UID_ANNOTATION,
)
from ..core.errors import is_not_found
from ..core.interfaces import ClusterClient, PodTranslator

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 63
HOSTS_VOLUME_NAME = "podsync-rewrite-hosts"
HOSTS_VOLUME_MOUNT_PATH = "/hosts-rewrite"

# metadata fields a container can reference about its own Pod
SELF_FIELD_PATHS = ("metadata.name", "metadata.namespace", "metadata.uid")


def safe_concat_name(*parts: str) -> str:
    """Join parts with '-', shortening with a digest past 63 characters."""
    full = "-".join(parts)
    if len(full) <= MAX_NAME_LENGTH:
        return full
    digest = hashlib.sha256(full.encode("utf-8")).hexdigest()
    return full[:52] + "-" + digest[:10]


def _env_name(service_name: str) -> str:
    return service_name.upper().replace("-", "_")


def _service_env(name: str, ip: str, ports: List[client.V1ServicePort]) -> Dict[str, str]:
    prefix = _env_name(name)
    env = {f"{prefix}_SERVICE_HOST": ip}
    for i, port in enumerate(ports):
        protocol = (port.protocol or "TCP").upper()
        url = f"{protocol.lower()}://{ip}:{port.port}"
        if i == 0:
            env[f"{prefix}_SERVICE_PORT"] = str(port.port)
            env[f"{prefix}_PORT"] = url
        if port.name:
            env[f"{prefix}_SERVICE_PORT_{_env_name(port.name)}"] = str(port.port)
        port_prefix = f"{prefix}_PORT_{port.port}_{protocol}"
        env[port_prefix] = url
        env[f"{port_prefix}_PROTO"] = protocol.lower()
        env[f"{port_prefix}_PORT"] = str(port.port)
        env[f"{port_prefix}_ADDR"] = ip
    return env


class DefaultPodTranslator(PodTranslator):
    """
    Translator used by the operator.

    Args:
        virtual_client: Used to look up services for container environments
        target_namespace: Host namespace all physical Pods of the tenant live in
        suffix: Tenant name appended to physical names
        rewrite_hosts: Make <hostname>.<subdomain> resolve inside the Pod
    """

    def __init__(
        self,
        virtual_client: ClusterClient,
        target_namespace: str,
        suffix: str,
        rewrite_hosts: bool = True,
        hosts_rewrite_image: str = HOSTS_REWRITE_IMAGE,
    ):
        self.virtual_client = virtual_client
        self.target_namespace = target_namespace
        self.suffix = suffix
        self.rewrite_hosts = rewrite_hosts
        self.hosts_rewrite_image = hosts_rewrite_image

    def physical_name(self, namespace: str, name: str) -> Tuple[str, str]:
        return self.target_namespace, safe_concat_name(name, "x", namespace, "x", self.suffix)

    def translate(self, vpod: client.V1Pod) -> client.V1Pod:
        ppod = copy.deepcopy(vpod)
        namespace, name = self.physical_name(vpod.metadata.namespace, vpod.metadata.name)
        ppod.metadata = client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=self._labels(vpod),
            annotations=self._annotations(vpod),
        )
        ppod.status = None

        spec = ppod.spec
        if not spec.hostname:
            spec.hostname = vpod.metadata.name[:MAX_NAME_LENGTH].rstrip("-.")
        # tokens for the virtual API are not valid on the host
        spec.automount_service_account_token = False
        spec.service_account_name = None
        spec.service_account = None
        # added through the ephemeralcontainers subresource once running
        spec.ephemeral_containers = None

        service_env = self._service_env_for(vpod)
        for container in (spec.init_containers or []) + (spec.containers or []):
            container.env, container.env_from = self.translate_container_env(
                container.env, container.env_from, vpod, service_env
            )

        if self.rewrite_hosts and spec.subdomain:
            self._add_hosts_rewrite(ppod, vpod)
        return ppod

    def translate_update(self, ppod: client.V1Pod, vpod: client.V1Pod) -> Optional[client.V1Pod]:
        updated: Optional[client.V1Pod] = None

        def target() -> client.V1Pod:
            nonlocal updated
            if updated is None:
                updated = copy.deepcopy(ppod)
            return updated

        labels = self._labels(vpod)
        if (ppod.metadata.labels or {}) != labels:
            target().metadata.labels = labels

        annotations = self._annotations(vpod)
        current_annotations = dict(ppod.metadata.annotations or {})
        if HOSTS_REWRITTEN_ANNOTATION in current_annotations:
            annotations[HOSTS_REWRITTEN_ANNOTATION] = current_annotations[HOSTS_REWRITTEN_ANNOTATION]
        if current_annotations != annotations:
            target().metadata.annotations = annotations

        for attr in ("containers", "init_containers"):
            images = {c.name: c.image for c in getattr(vpod.spec, attr) or []}
            for i, container in enumerate(getattr(ppod.spec, attr) or []):
                image = images.get(container.name)
                if image is not None and image != container.image:
                    getattr(target().spec, attr)[i].image = image

        if vpod.spec.active_deadline_seconds != ppod.spec.active_deadline_seconds:
            target().spec.active_deadline_seconds = vpod.spec.active_deadline_seconds

        # tolerations can only be added to a running pod
        existing = [t.to_dict() for t in ppod.spec.tolerations or []]
        added = [t for t in vpod.spec.tolerations or [] if t.to_dict() not in existing]
        if added:
            spec = target().spec
            spec.tolerations = list(spec.tolerations or []) + copy.deepcopy(added)

        return updated

    def translate_services_to_env(
        self,
        enable_service_links: Optional[bool],
        services: List[client.V1Service],
        kube_ip: str,
    ) -> Dict[str, str]:
        env: Dict[str, str] = {}
        # service links default to on in the Pod API
        if enable_service_links is None or enable_service_links:
            for svc in services:
                ip = svc.spec.cluster_ip if svc.spec else None
                if not ip or ip == "None":
                    continue
                env.update(_service_env(svc.metadata.name, ip, svc.spec.ports or []))
        if kube_ip:
            env.update(_service_env("kubernetes", kube_ip, [client.V1ServicePort(name="https", port=443, protocol="TCP")]))
        return env

    def translate_container_env(
        self,
        env: Optional[List[client.V1EnvVar]],
        env_from: Optional[List[client.V1EnvFromSource]],
        vpod: client.V1Pod,
        service_env: Dict[str, str],
    ) -> Tuple[List[client.V1EnvVar], Optional[List[client.V1EnvFromSource]]]:
        explicit = [self._resolve_self_reference(e, vpod) for e in env or []]
        explicit_names = {e.name for e in explicit}
        result = [
            client.V1EnvVar(name=key, value=service_env[key])
            for key in sorted(service_env)
            if key not in explicit_names
        ]
        return result + explicit, env_from

    def _resolve_self_reference(self, env_var: client.V1EnvVar, vpod: client.V1Pod) -> client.V1EnvVar:
        field_ref = env_var.value_from.field_ref if env_var.value_from else None
        if field_ref is None or field_ref.field_path not in SELF_FIELD_PATHS:
            return env_var
        # the physical pod's own name, namespace and uid differ from the tenant's view
        value = getattr(vpod.metadata, field_ref.field_path.split(".", 1)[1])
        return client.V1EnvVar(name=env_var.name, value=value)

    def _service_env_for(self, vpod: client.V1Pod) -> Dict[str, str]:
        kube_ip = ""
        try:
            kube_ip = self.virtual_client.get_service("default", "kubernetes").spec.cluster_ip or ""
        except client.exceptions.ApiException as e:
            if not is_not_found(e):
                raise
        services = self.virtual_client.list_services(vpod.metadata.namespace)
        return self.translate_services_to_env(vpod.spec.enable_service_links, services, kube_ip)

    def _labels(self, vpod: client.V1Pod) -> Dict[str, str]:
        labels = dict(vpod.metadata.labels or {})
        labels[MANAGED_BY_LABEL] = self.suffix
        labels[NAMESPACE_LABEL] = vpod.metadata.namespace
        return labels

    def _annotations(self, vpod: client.V1Pod) -> Dict[str, str]:
        annotations = dict(vpod.metadata.annotations or {})
        annotations[NAME_ANNOTATION] = vpod.metadata.name
        annotations[NAMESPACE_ANNOTATION] = vpod.metadata.namespace
        if vpod.metadata.uid:
            annotations[UID_ANNOTATION] = vpod.metadata.uid
        return annotations

    def _add_hosts_rewrite(self, ppod: client.V1Pod, vpod: client.V1Pod) -> None:
        spec = ppod.spec
        hostname = spec.hostname
        fqdn = f"{hostname}.{spec.subdomain}.{vpod.metadata.namespace}.svc.cluster.local"
        script = (
            f"sed -E -e 's/^([0-9.]+)[[:space:]]+{hostname}\\b.*$/\\1\\t{fqdn}\\t{hostname}/' "
            f"/etc/hosts > {HOSTS_VOLUME_MOUNT_PATH}/hosts"
        )
        spec.volumes = list(spec.volumes or []) + [
            client.V1Volume(name=HOSTS_VOLUME_NAME, empty_dir=client.V1EmptyDirVolumeSource())
        ]
        init = client.V1Container(
            name=HOSTS_REWRITE_CONTAINER_NAME,
            image=self.hosts_rewrite_image,
            command=["sh"],
            args=["-c", script],
            volume_mounts=[client.V1VolumeMount(name=HOSTS_VOLUME_NAME, mount_path=HOSTS_VOLUME_MOUNT_PATH)],
            resources=client.V1ResourceRequirements(limits={"cpu": "30m", "memory": "64Mi"}),
        )
        spec.init_containers = [init] + list(spec.init_containers or [])
        for container in spec.containers or []:
            container.volume_mounts = list(container.volume_mounts or []) + [
                client.V1VolumeMount(name=HOSTS_VOLUME_NAME, mount_path="/etc/hosts", sub_path="hosts")
            ]
        ppod.metadata.annotations[HOSTS_REWRITTEN_ANNOTATION] = "true"
