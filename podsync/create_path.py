"""
Create path: builds the candidate physical Pod for a virtual Pod that has no
physical twin yet.
"""

import logging
from typing import Dict, List, Optional, Tuple

from kubernetes import client

from .core.constants import (
    EVENT_WARNING,
    MISSING_NODE_REQUEUE_SECONDS,
    REASON_SYNC_WARNING,
)
from .core.errors import is_not_found
from .core.interfaces import (
    ClusterClient,
    EventRecorder,
    PodTranslator,
    SecurityValidator,
)
from .core.result import SyncResult
from .hostpath import rewrite_host_paths

logger = logging.getLogger(__name__)


class CreatePathPolicy:
    """
    Translates, decorates and gates the candidate physical Pod.

    The decoration order is fixed: tolerations, node selector, host path
    rewrite, then the scheduler gate.
    """

    def __init__(
        self,
        virtual_client: ClusterClient,
        translator: PodTranslator,
        recorder: EventRecorder,
        virtual_logs_path: str,
        tolerations: Optional[List[client.V1Toleration]] = None,
        node_selector: Optional[Dict[str, str]] = None,
        enable_scheduler: bool = False,
        security_validator: Optional[SecurityValidator] = None,
    ):
        self.virtual_client = virtual_client
        self.translator = translator
        self.recorder = recorder
        self.virtual_logs_path = virtual_logs_path
        self.tolerations = list(tolerations or [])
        self.node_selector = dict(node_selector) if node_selector else None
        self.enable_scheduler = enable_scheduler
        self.security_validator = security_validator

    def build(self, vpod: client.V1Pod, log=logger) -> Tuple[Optional[client.V1Pod], SyncResult]:
        """
        Build the physical Pod to create.

        Returns:
            (pod, result): pod is None when creation must not happen in this
            cycle; result then says when to come back
        """
        if self.security_validator is not None and not self.security_validator.is_valid(vpod):
            log.info("virtual pod violates the pod security standard, not syncing")
            return None, SyncResult()

        ppod = self.translator.translate(vpod)

        if self.tolerations:
            ppod.spec.tolerations = list(ppod.spec.tolerations or []) + list(self.tolerations)

        if self.node_selector is not None:
            if not ppod.spec.node_name:
                merged = dict(ppod.spec.node_selector or {})
                merged.update(self.node_selector)
                ppod.spec.node_selector = merged
            elif not self._node_exists(ppod.spec.node_name):
                self.recorder.eventf(
                    vpod,
                    EVENT_WARNING,
                    REASON_SYNC_WARNING,
                    "Given nodeName %s does not exist in virtual cluster",
                    ppod.spec.node_name,
                )
                return None, SyncResult(requeue_after=MISSING_NODE_REQUEUE_SECONDS)

        log.debug("checking if pod mounts any volume")
        ppod = rewrite_host_paths(ppod, self.virtual_logs_path, log)

        if self.enable_scheduler and not ppod.spec.node_name:
            log.debug("waiting for the virtual scheduler to assign a node")
            return None, SyncResult()

        return ppod, SyncResult()

    def _node_exists(self, node_name: str) -> bool:
        try:
            self.virtual_client.get_node(node_name)
        except client.exceptions.ApiException as e:
            if not is_not_found(e):
                raise
            return False
        return True
