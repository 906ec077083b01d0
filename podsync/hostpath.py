"""
Host path rewriting for log volumes.

Tenants mount the node's log directories through hostPath volumes. On the
shared host those paths are rewritten to a per-tenant log root so a tenant's
log scraper only sees its own Pods. Containers mounting /var/log/pods also get
the real host directory mounted at a physical-only location; the log mapper
needs it as the target of its symlinks.

The rewrite runs on every create attempt, so it must be a no-op on its own
output: the extra volume carries a name suffix and is skipped on later passes.
"""

import copy
import logging

from kubernetes import client

from .core.constants import (
    LOG_HOSTPATH_PATH,
    POD_LOGGING_HOSTPATH_PATH,
    PHYSICAL_LOG_VOLUME_NAME_SUFFIX,
    PHYSICAL_LOG_VOLUME_MOUNT_PATH,
)

logger = logging.getLogger(__name__)


def physical_volume_name(volume_name: str) -> str:
    return f"{volume_name}-{PHYSICAL_LOG_VOLUME_NAME_SUFFIX}"


def rewrite_host_paths(ppod: client.V1Pod, virtual_logs_path: str, log=logger) -> client.V1Pod:
    """
    Rewrite log hostPath volumes of ``ppod`` in place and return it.

    Args:
        ppod: Candidate physical Pod
        virtual_logs_path: Tenant log root on the host
        log: Logger (or adapter) for branch decisions
    """
    volumes = ppod.spec.volumes or []
    if not volumes:
        return ppod

    log.debug("checking for hostpath volumes")
    # volumes appended below are not revisited in this pass
    for volume in list(volumes):
        host_path = volume.host_path
        if host_path is None:
            continue

        if (
            host_path.path == POD_LOGGING_HOSTPATH_PATH
            and not volume.name.endswith(PHYSICAL_LOG_VOLUME_NAME_SUFFIX)
        ):
            log.info(f"rewriting hostPath for pod {ppod.metadata.name}")
            host_path.path = virtual_logs_path + "/pods"
            log.info("adding original hostPath to relevant containers")
            _add_physical_log_path(ppod, volume.name, host_path.type)
        elif host_path.path == LOG_HOSTPATH_PATH:
            host_path.path = virtual_logs_path

    return ppod


def _add_physical_log_path(ppod: client.V1Pod, volume_name: str, host_path_type) -> None:
    name = physical_volume_name(volume_name)
    ppod.spec.volumes.append(
        client.V1Volume(
            name=name,
            host_path=client.V1HostPathVolumeSource(
                path=POD_LOGGING_HOSTPATH_PATH,
                type=host_path_type,
            ),
        )
    )

    # init containers keep only the tenant-visible mount
    for container in ppod.spec.containers or []:
        mounts = container.volume_mounts or []
        for mount in list(mounts):
            if mount.name != volume_name:
                continue
            physical_mount = copy.deepcopy(mount)
            physical_mount.name = name
            physical_mount.mount_path = PHYSICAL_LOG_VOLUME_MOUNT_PATH
            mounts.append(physical_mount)
