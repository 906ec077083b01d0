"""
Event recorder writing core/v1 Events to the virtual API server.
"""

import logging
from datetime import datetime, timezone

from kubernetes import client

from podsync.core.interfaces import EventRecorder

logger = logging.getLogger(__name__)

COMPONENT = "podsync"


class KubeEventRecorder(EventRecorder):
    """
    Records events for Pods. Failing to record an event is logged and never
    fails the reconcile that produced it.
    """

    def __init__(self, api_client: client.ApiClient, component: str = COMPONENT):
        self.core_api = client.CoreV1Api(api_client)
        self.component = component

    def event(self, obj, event_type: str, reason: str, message: str) -> None:
        meta = obj.metadata
        now = datetime.now(timezone.utc)
        body = client.CoreV1Event(
            metadata=client.V1ObjectMeta(
                generate_name=f"{meta.name}.",
                namespace=meta.namespace,
            ),
            involved_object=client.V1ObjectReference(
                api_version="v1",
                kind="Pod",
                name=meta.name,
                namespace=meta.namespace,
                uid=meta.uid,
                resource_version=meta.resource_version,
            ),
            type=event_type,
            reason=reason,
            message=message[:1024],
            source=client.V1EventSource(component=self.component),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )
        try:
            self.core_api.create_namespaced_event(meta.namespace, body)
        except client.exceptions.ApiException as e:
            logger.error(f"Failed to record event {reason} for {meta.namespace}/{meta.name}: {e}")
