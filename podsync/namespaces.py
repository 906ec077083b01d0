"""
Namespace label watch.

Pod translation depends on namespace labels, so a label change re-enqueues
every Pod of the namespace. One list call, no waiting on reconciles.
"""

import logging
from typing import Callable, Mapping, Optional

from kubernetes import client

from .core.interfaces import ClusterClient

logger = logging.getLogger(__name__)


class NamespaceLabelHandler:

    def __init__(self, virtual_client: ClusterClient, enqueue: Callable[[str, str], None]):
        self.virtual_client = virtual_client
        self.enqueue = enqueue

    def on_update(
        self,
        namespace: str,
        old_labels: Optional[Mapping[str, str]],
        new_labels: Optional[Mapping[str, str]],
    ) -> int:
        """
        Returns:
            Number of Pods enqueued
        """
        if dict(old_labels or {}) == dict(new_labels or {}):
            return 0

        try:
            pods = self.virtual_client.list_pods(namespace)
        except client.exceptions.ApiException as e:
            logger.info(f"failed to list pods in the {namespace} namespace when handling namespace update: {e}")
            return 0

        for pod in pods:
            self.enqueue(namespace, pod.metadata.name)
        return len(pods)
