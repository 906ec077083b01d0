"""
Steady state: two-way sync between a virtual Pod and its physical twin.

Branches run in strict priority and every satisfied branch ends the cycle.
Resolving one concern per call keeps each write based on fresh state; the
write itself triggers the next reconcile.
"""

import copy
import logging
from typing import Optional

from kubernetes import client

from .binding import NodeBinder
from .core.constants import (
    DEFAULT_GRACE_PERIOD_SECONDS,
    EVENT_WARNING,
    HOSTS_REWRITE_CONTAINER_NAME,
    HOSTS_REWRITTEN_ANNOTATION,
    REASON_SYNC_ERROR,
)
from .core.errors import is_conflict, is_not_found
from .core.interfaces import (
    ClusterClient,
    ConditionMerger,
    EventRecorder,
    PodTranslator,
    SecurityValidator,
    SyncWriter,
)
from .core.result import SyncResult
from .ephemeral import EphemeralContainerSync, needs_ephemeral_sync
from .writer import log_changes

logger = logging.getLogger(__name__)


def strip_host_rewrite_container(ppod: client.V1Pod) -> client.V1Pod:
    """
    Drop the hosts-rewrite init container status from a physical Pod.

    Returns the Pod itself when it was never rewritten, a copy otherwise.
    """
    annotations = ppod.metadata.annotations or {}
    if annotations.get(HOSTS_REWRITTEN_ANNOTATION) != "true":
        return ppod

    stripped = copy.deepcopy(ppod)
    if stripped.status is not None and stripped.status.init_container_statuses:
        stripped.status.init_container_statuses = [
            s for s in stripped.status.init_container_statuses
            if s.name != HOSTS_REWRITE_CONTAINER_NAME
        ]
    return stripped


def _prune(value):
    # the API server drops empty lists and maps, so they equal an unset field
    if isinstance(value, dict):
        pruned = {k: _prune(v) for k, v in value.items()}
        return {k: v for k, v in pruned.items() if v is not None and v != [] and v != {}}
    if isinstance(value, list):
        return [_prune(v) for v in value]
    return value


def comparable_status(status: Optional[client.V1PodStatus]) -> dict:
    """Status as a pruned dict without the hosts-rewrite init container entry."""
    if status is None:
        return {}
    data = status.to_dict()
    if data.get("init_container_statuses"):
        data["init_container_statuses"] = [
            s for s in data["init_container_statuses"] if s.get("name") != HOSTS_REWRITE_CONTAINER_NAME
        ]
    return _prune(data)


def _terminating(pod: client.V1Pod) -> bool:
    return pod.metadata.deletion_timestamp is not None


class SteadyStatePolicy:
    """
    Deletion propagation, node binding, status flow and spec flow for a
    virtual/physical pair.
    """

    def __init__(
        self,
        virtual_client: ClusterClient,
        physical_client: ClusterClient,
        translator: PodTranslator,
        recorder: EventRecorder,
        writer: SyncWriter,
        node_binder: NodeBinder,
        condition_merger: ConditionMerger,
        ephemeral_sync: EphemeralContainerSync,
        security_validator: Optional[SecurityValidator] = None,
    ):
        self.virtual_client = virtual_client
        self.physical_client = physical_client
        self.translator = translator
        self.recorder = recorder
        self.writer = writer
        self.node_binder = node_binder
        self.condition_merger = condition_merger
        self.ephemeral_sync = ephemeral_sync
        self.security_validator = security_validator

    def sync(self, ppod: client.V1Pod, vpod: client.V1Pod, log=logger) -> SyncResult:
        if _terminating(ppod):
            self._propagate_physical_deletion(ppod, vpod, log)
            return SyncResult()

        if _terminating(vpod):
            return self._propagate_virtual_deletion(ppod, vpod, log)

        if ppod.spec.node_name:
            if self.node_binder.ensure_node(ppod, vpod, log):
                return SyncResult(requeue=True)

        stripped = strip_host_rewrite_container(ppod)

        if self.condition_merger.update_conditions(stripped, vpod):
            log.info("readiness gate conditions pushed to physical pod")
            return SyncResult()

        if comparable_status(vpod.status) != comparable_status(stripped.status):
            self._update_virtual_status(stripped, vpod, log)
            return SyncResult()

        if needs_ephemeral_sync(vpod, stripped):
            self.ephemeral_sync.sync(ppod, vpod, log)

        if self.security_validator is not None and not self.security_validator.is_valid(vpod):
            log.info("virtual pod violates the pod security standard, not syncing spec")
            return SyncResult()

        updated = self.translator.translate_update(ppod, vpod)
        if updated is not None:
            log_changes(ppod, updated, log)
            self.writer.sync_down_update(vpod, updated)
        return SyncResult()

    def _propagate_physical_deletion(self, ppod: client.V1Pod, vpod: client.V1Pod, log) -> None:
        namespace, name = vpod.metadata.namespace, vpod.metadata.name
        if not _terminating(vpod):
            grace_period = vpod.spec.termination_grace_period_seconds
            if grace_period is None:
                grace_period = DEFAULT_GRACE_PERIOD_SECONDS
            log.info(f"delete virtual pod {namespace}/{name}, because the physical pod is being deleted")
            self.virtual_client.delete_pod(namespace, name, grace_period_seconds=grace_period)
        elif vpod.metadata.deletion_grace_period_seconds != ppod.metadata.deletion_grace_period_seconds:
            grace_period = ppod.metadata.deletion_grace_period_seconds
            log.info(f"delete virtual pod {namespace}/{name} with grace period seconds {grace_period}")
            self.virtual_client.delete_pod(
                namespace,
                name,
                grace_period_seconds=grace_period,
                uid=vpod.metadata.uid,
            )

    def _propagate_virtual_deletion(self, ppod: client.V1Pod, vpod: client.V1Pod, log) -> SyncResult:
        namespace, name = ppod.metadata.namespace, ppod.metadata.name
        log.info(f"delete physical pod {namespace}/{name}, because virtual pod is being deleted")
        try:
            self.physical_client.delete_pod(
                namespace,
                name,
                grace_period_seconds=vpod.metadata.deletion_grace_period_seconds,
                uid=ppod.metadata.uid,
            )
        except client.exceptions.ApiException as e:
            if not is_not_found(e):
                raise
        return SyncResult()

    def _update_virtual_status(self, stripped: client.V1Pod, vpod: client.V1Pod, log) -> None:
        updated = copy.deepcopy(vpod)
        updated.status = copy.deepcopy(stripped.status)
        log.info(
            f"update virtual pod {vpod.metadata.namespace}/{vpod.metadata.name}, "
            f"because status has changed"
        )
        log_changes(vpod, updated, log)
        try:
            self.virtual_client.update_pod_status(updated)
        except client.exceptions.ApiException as e:
            if not is_conflict(e):
                self.recorder.eventf(vpod, EVENT_WARNING, REASON_SYNC_ERROR, "Error updating pod: %s", e)
            raise
