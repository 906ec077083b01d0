"""
Pod syncer: the two reconcile entry points.

- sync_down(vpod): the virtual Pod has no physical twin yet
- sync(ppod, vpod): both twins exist

Both are idempotent and safe to call repeatedly for the same key. The
caller (work queue) guarantees at most one in-flight call per key.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from kubernetes import client

from .binding import NodeBinder
from .core.constants import INDEX_BY_PHYSICAL_NAME, ZERO_GRACE_PERIOD_SECONDS
from .core.errors import ConfigError, is_not_found
from .core.indexer import Indexer
from .core.interfaces import (
    ClusterClient,
    ConditionMerger,
    EventRecorder,
    PodTranslator,
    SecurityValidator,
    SyncWriter,
)
from .core.result import SyncResult
from .create_path import CreatePathPolicy
from .ephemeral import EphemeralContainerSync
from .logging_config import get_logger, pod_trace_id
from .namespaces import NamespaceLabelHandler
from .steady_state import SteadyStatePolicy
from .translate.conditions import ReadinessGateMerger
from .writer import PhysicalPodWriter

logger = logging.getLogger(__name__)


class PodSyncer:
    """
    Reconcile engine for one tenant.

    Collaborators are injected; defaults are built for the ones that only
    need the two cluster clients and the recorder.
    """

    def __init__(
        self,
        virtual_client: ClusterClient,
        physical_client: ClusterClient,
        translator: PodTranslator,
        recorder: EventRecorder,
        virtual_logs_path: str,
        tolerations: Optional[List[client.V1Toleration]] = None,
        node_selector: Optional[Dict[str, str]] = None,
        enable_scheduler: bool = False,
        security_validator: Optional[SecurityValidator] = None,
        condition_merger: Optional[ConditionMerger] = None,
        writer: Optional[SyncWriter] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        if node_selector is not None and not node_selector:
            raise ConfigError("at least one label=value pair has to be defined in the node selector")

        self.virtual_client = virtual_client
        self.physical_client = physical_client
        self.translator = translator
        self.recorder = recorder
        self.writer = writer or PhysicalPodWriter(physical_client, recorder)

        self.create_path = CreatePathPolicy(
            virtual_client=virtual_client,
            translator=translator,
            recorder=recorder,
            virtual_logs_path=virtual_logs_path,
            tolerations=tolerations,
            node_selector=node_selector,
            enable_scheduler=enable_scheduler,
            security_validator=security_validator,
        )
        self.node_binder = NodeBinder(virtual_client, recorder, sleep=sleep, monotonic=monotonic)
        self.steady_state = SteadyStatePolicy(
            virtual_client=virtual_client,
            physical_client=physical_client,
            translator=translator,
            recorder=recorder,
            writer=self.writer,
            node_binder=self.node_binder,
            condition_merger=condition_merger or ReadinessGateMerger(physical_client),
            ephemeral_sync=EphemeralContainerSync(virtual_client, physical_client, translator),
            security_validator=security_validator,
        )

    def sync_down(self, vpod: client.V1Pod) -> SyncResult:
        """Create the physical twin of a virtual Pod."""
        log = get_logger(__name__, trace_id=pod_trace_id(vpod))

        # the physical pod vanished behind our back after the pod ran; creating
        # it again would run the workload twice under the same identity
        if vpod.metadata.deletion_timestamp is not None or (
            vpod.status is not None and vpod.status.start_time is not None
        ):
            log.info(
                f"delete pod {vpod.metadata.namespace}/{vpod.metadata.name} immediately, "
                f"because it is being deleted & there is no physical pod"
            )
            try:
                self.virtual_client.delete_pod(
                    vpod.metadata.namespace,
                    vpod.metadata.name,
                    grace_period_seconds=ZERO_GRACE_PERIOD_SECONDS,
                )
            except client.exceptions.ApiException as e:
                if not is_not_found(e):
                    raise
            return SyncResult()

        ppod, result = self.create_path.build(vpod, log)
        if ppod is None:
            return result

        self.writer.sync_down_create(vpod, ppod)
        return result

    def sync(self, ppod: client.V1Pod, vpod: client.V1Pod) -> SyncResult:
        """Reconcile an existing virtual/physical pair."""
        log = get_logger(__name__, trace_id=pod_trace_id(vpod))
        return self.steady_state.sync(ppod, vpod, log)

    def register_indices(self, indexer: Indexer) -> None:
        """Index virtual Pods by the name of their physical twin."""
        def by_physical_name(vpod):
            namespace, name = self.translator.physical_name(vpod.metadata.namespace, vpod.metadata.name)
            return [f"{namespace}/{name}"]

        indexer.add_index(INDEX_BY_PHYSICAL_NAME, by_physical_name)

    def namespace_label_handler(self, enqueue: Callable[[str, str], None]) -> NamespaceLabelHandler:
        """Handler that re-enqueues every Pod of a namespace whose labels changed."""
        return NamespaceLabelHandler(self.virtual_client, enqueue)
