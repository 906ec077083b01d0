"""
Generic write helpers: the final API call once a desired object is computed.
"""

import logging
from typing import Any, List, Tuple

from kubernetes import client

from .core.constants import EVENT_WARNING, REASON_SYNC_ERROR
from .core.errors import is_conflict
from .core.interfaces import ClusterClient, EventRecorder, SyncWriter

logger = logging.getLogger(__name__)


def diff_objects(old: Any, new: Any) -> List[Tuple[str, Any, Any]]:
    """
    Field-level differences between two API objects.

    Returns:
        Sorted (path, old, new) tuples; lists are compared as a whole
    """
    changes: List[Tuple[str, Any, Any]] = []
    _diff(_as_dict(old), _as_dict(new), "", changes)
    return sorted(changes, key=lambda change: change[0])


def _as_dict(obj: Any) -> Any:
    if obj is None:
        return None
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return obj


def _diff(old: Any, new: Any, path: str, out: List[Tuple[str, Any, Any]]) -> None:
    if isinstance(old, dict) and isinstance(new, dict):
        for key in set(old) | set(new):
            _diff(old.get(key), new.get(key), f"{path}.{key}" if path else key, out)
        return
    if old != new:
        out.append((path, old, new))


def log_changes(old: Any, new: Any, log=logger) -> None:
    for path, before, after in diff_objects(old, new):
        log.info(f"change detected: {path}: {before!r} -> {after!r}")


class PhysicalPodWriter(SyncWriter):
    """Creates and updates physical Pods on the host cluster."""

    def __init__(self, physical_client: ClusterClient, recorder: EventRecorder):
        self.physical_client = physical_client
        self.recorder = recorder

    def sync_down_create(self, vpod: client.V1Pod, ppod: client.V1Pod) -> None:
        logger.info(
            f"create physical pod {ppod.metadata.namespace}/{ppod.metadata.name} "
            f"for {vpod.metadata.namespace}/{vpod.metadata.name}"
        )
        try:
            self.physical_client.create_pod(ppod)
        except client.exceptions.ApiException as e:
            # AlreadyExists is a 409 as well: the cache has not caught up yet
            if e.status != 409:
                self.recorder.eventf(vpod, EVENT_WARNING, REASON_SYNC_ERROR, "Error syncing to physical cluster: %s", e)
            raise

    def sync_down_update(self, vpod: client.V1Pod, ppod: client.V1Pod) -> None:
        logger.info(f"update physical pod {ppod.metadata.namespace}/{ppod.metadata.name}")
        try:
            self.physical_client.update_pod(ppod)
        except client.exceptions.ApiException as e:
            if not is_conflict(e):
                self.recorder.eventf(vpod, EVENT_WARNING, REASON_SYNC_ERROR, "Error updating physical pod: %s", e)
            raise
