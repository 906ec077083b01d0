"""
Node binding: mirrors the host scheduler's decision into the virtual API.

Nothing schedules Pods in the virtual API server, so once the physical twin
has a node the syncer issues the Binding itself and waits until the virtual
Pod reflects it.
"""

import logging
import time
from typing import Callable

from kubernetes import client

from .core.constants import (
    BIND_POLL_INTERVAL_SECONDS,
    BIND_POLL_TIMEOUT_SECONDS,
    EVENT_WARNING,
    REASON_SYNC_ERROR,
)
from .core.errors import is_not_found
from .core.interfaces import ClusterClient, EventRecorder
from .core.poll import poll_until

logger = logging.getLogger(__name__)


class NodeBinder:
    """
    Reconciles node assignment between a physical Pod and its virtual twin.
    """

    def __init__(
        self,
        virtual_client: ClusterClient,
        recorder: EventRecorder,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.virtual_client = virtual_client
        self.recorder = recorder
        self._sleep = sleep
        self._monotonic = monotonic

    def ensure_node(self, ppod: client.V1Pod, vpod: client.V1Pod, log=logger) -> bool:
        """
        Make sure the virtual Pod is bound to the physical Pod's node.

        Only called when the physical Pod already has a node.

        Returns:
            True when something changed (or must settle first) and the key
            should be reconciled again, False when nothing had to be done
        """
        node_name = ppod.spec.node_name
        vnode_name = vpod.spec.node_name
        namespace, name = vpod.metadata.namespace, vpod.metadata.name

        if vnode_name and vnode_name != node_name:
            # cannot be repaired in place, the tenant's controllers recreate it
            log.info(
                f"delete virtual pod {namespace}/{name}, because virtual and "
                f"physical pods have different assigned nodes"
            )
            self.virtual_client.delete_pod(namespace, name)
            return True

        # binding to a node the virtual cluster does not know gets the pod
        # garbage collected, so wait for the node object to be synced
        try:
            self.virtual_client.get_node(node_name)
        except client.exceptions.ApiException as e:
            if not is_not_found(e):
                log.info(f"error retrieving virtual node {node_name}: {e}")
                raise
            log.debug(f"virtual node {node_name} not synced yet")
            return True

        if vnode_name != node_name:
            self._assign_node(vpod, node_name, log)
            return True

        return False

    def _assign_node(self, vpod: client.V1Pod, node_name: str, log) -> None:
        namespace, name = vpod.metadata.namespace, vpod.metadata.name
        log.info(
            f"bind virtual pod {namespace}/{name} to node {node_name}, because "
            f"node name between physical and virtual is different"
        )
        try:
            self.virtual_client.bind_pod(namespace, name, node_name)
        except client.exceptions.ApiException as e:
            self.recorder.eventf(vpod, EVENT_WARNING, REASON_SYNC_ERROR, "Error binding pod: %s", e)
            raise

        poll_until(
            lambda: self._bound_or_gone(namespace, name),
            interval=BIND_POLL_INTERVAL_SECONDS,
            timeout=BIND_POLL_TIMEOUT_SECONDS,
            sleep=self._sleep,
            monotonic=self._monotonic,
        )

    def _bound_or_gone(self, namespace: str, name: str) -> bool:
        try:
            current = self.virtual_client.get_pod(namespace, name)
        except client.exceptions.ApiException as e:
            if is_not_found(e):
                return True
            raise
        return bool(current.spec.node_name)
