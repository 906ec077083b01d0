"""
Pod controller: feeds the reconcile queue and drives the syncer.

Virtual Pod events arrive through kopf handlers; physical Pod events come
from a watch on the target namespace and are mapped back to their virtual
twins through the physical-name index. Worker threads drain the queue and
call sync_down or sync depending on whether the physical twin exists.
"""

import logging
import threading
from typing import Callable, List, Optional

from kubernetes import client, watch

from podsync import PodSyncer, SyncResult
from podsync.core.constants import INDEX_BY_PHYSICAL_NAME
from podsync.core.errors import is_already_exists, is_conflict, is_not_found
from podsync.core.indexer import Indexer
from podsync.logging_config import get_logger

from .metrics import set_queue_depth, track_reconcile
from .workqueue import Key, ReconcileQueue, ShutDown

logger = logging.getLogger(__name__)

WATCH_TIMEOUT_SECONDS = 300
WATCH_RETRY_SECONDS = 5.0


def _retryable(e: client.exceptions.ApiException) -> bool:
    # AlreadyExists means the cache is behind; the next pass sees the pod
    return is_conflict(e) or is_already_exists(e)


class PodController:

    def __init__(
        self,
        syncer: PodSyncer,
        target_namespace: str,
        queue: Optional[ReconcileQueue] = None,
        indexer: Optional[Indexer] = None,
        workers: int = 4,
        physical_list_func: Optional[Callable] = None,
        resync_seconds: Optional[float] = None,
    ):
        self.syncer = syncer
        self.target_namespace = target_namespace
        self.queue = queue or ReconcileQueue()
        self.indexer = indexer or Indexer()
        self.workers = workers
        self.physical_list_func = physical_list_func
        self.resync_seconds = resync_seconds
        self._threads: List[threading.Thread] = []
        self._stopped = threading.Event()

        if not self.indexer.has_index(INDEX_BY_PHYSICAL_NAME):
            syncer.register_indices(self.indexer)
        self.namespace_handler = syncer.namespace_label_handler(self.enqueue)

    def enqueue(self, namespace: str, name: str) -> None:
        self.queue.add((namespace, name))
        set_queue_depth(len(self.queue))

    def on_virtual_pod(self, namespace: str, name: str, deleted: bool = False) -> None:
        """Track a virtual Pod event in the index and queue its key."""
        if deleted:
            self.indexer.remove((namespace, name))
        else:
            self.indexer.update(client.V1Pod(metadata=client.V1ObjectMeta(name=name, namespace=namespace)))
        self.enqueue(namespace, name)

    def on_physical_pod(self, ppod: client.V1Pod) -> List[Key]:
        """Queue the virtual twins of a physical Pod; unknown pods are ignored."""
        value = f"{ppod.metadata.namespace}/{ppod.metadata.name}"
        keys = self.indexer.lookup(INDEX_BY_PHYSICAL_NAME, value)
        for namespace, name in keys:
            self.enqueue(namespace, name)
        return keys

    def resync(self) -> int:
        """Re-enqueue every known virtual Pod; covers events missed by the watches."""
        keys = self.indexer.keys()
        for namespace, name in keys:
            self.enqueue(namespace, name)
        return len(keys)

    def on_namespace_labels(self, namespace: str, old_labels, new_labels) -> int:
        return self.namespace_handler.on_update(namespace, old_labels, new_labels)

    def reconcile_key(self, key: Key) -> SyncResult:
        namespace, name = key
        log = get_logger(__name__, trace_id=f"{namespace}/{name}")

        try:
            vpod = self.syncer.virtual_client.get_pod(namespace, name)
        except client.exceptions.ApiException as e:
            if is_not_found(e):
                # virtual pod is gone; the physical twin was already deleted
                # with it or is left to the host's garbage collection
                log.debug("virtual pod not found, nothing to do")
                self.indexer.remove(key)
                return SyncResult()
            raise

        self.indexer.update(vpod)
        pnamespace, pname = self.syncer.translator.physical_name(namespace, name)
        try:
            ppod = self.syncer.physical_client.get_pod(pnamespace, pname)
        except client.exceptions.ApiException as e:
            if not is_not_found(e):
                raise
            ppod = None

        entrypoint = "sync_down" if ppod is None else "sync"
        with track_reconcile(entrypoint) as outcome:
            try:
                if ppod is None:
                    result = self.syncer.sync_down(vpod)
                else:
                    result = self.syncer.sync(ppod, vpod)
            except client.exceptions.ApiException as e:
                if _retryable(e):
                    outcome["result"] = "conflict"
                raise
            if not result.done:
                outcome["result"] = "requeue"
        return result

    def process_next(self, timeout: Optional[float] = None) -> bool:
        """
        Reconcile one key from the queue.

        Returns:
            False once the queue is shut down, True otherwise
        """
        try:
            key = self.queue.get(timeout=timeout)
        except ShutDown:
            return False
        if key is None:
            return True

        log = get_logger(__name__, trace_id=f"{key[0]}/{key[1]}")
        try:
            result = self.reconcile_key(key)
        except client.exceptions.ApiException as e:
            if _retryable(e):
                log.info(f"conflict while syncing, requeueing: {e.reason}")
            else:
                log.error(f"error syncing pod: {e}")
            self.queue.add_rate_limited(key)
        except Exception as e:
            log.error(f"error syncing pod: {e}")
            self.queue.add_rate_limited(key)
        else:
            if result.requeue_after is not None:
                self.queue.forget(key)
                self.queue.add_after(key, result.requeue_after)
            elif result.requeue:
                self.queue.add_rate_limited(key)
            else:
                self.queue.forget(key)
        finally:
            self.queue.done(key)
            set_queue_depth(len(self.queue))
        return True

    def _worker(self) -> None:
        while self.process_next():
            pass

    def _watch_physical(self) -> None:
        while not self._stopped.is_set():
            w = watch.Watch()
            try:
                for event in w.stream(
                    self.physical_list_func,
                    self.target_namespace,
                    timeout_seconds=WATCH_TIMEOUT_SECONDS,
                ):
                    if self._stopped.is_set():
                        w.stop()
                        break
                    self.on_physical_pod(event["object"])
            except client.exceptions.ApiException as e:
                logger.warning(f"physical pod watch failed, retrying: {e}")
                self._stopped.wait(WATCH_RETRY_SECONDS)
            except Exception:
                # dropped connections surface as urllib3 errors
                logger.exception("physical pod watch interrupted, retrying")
                self._stopped.wait(WATCH_RETRY_SECONDS)

    def _resync_loop(self) -> None:
        while not self._stopped.wait(self.resync_seconds):
            count = self.resync()
            logger.debug(f"resync enqueued {count} pods")

    def start(self) -> None:
        for i in range(self.workers):
            thread = threading.Thread(target=self._worker, daemon=True, name=f"PodSyncWorker-{i}")
            thread.start()
            self._threads.append(thread)

        if self.physical_list_func is not None:
            thread = threading.Thread(target=self._watch_physical, daemon=True, name="PhysicalPodWatch")
            thread.start()
            self._threads.append(thread)

        if self.resync_seconds:
            thread = threading.Thread(target=self._resync_loop, daemon=True, name="PodResync")
            thread.start()
            self._threads.append(thread)

        logger.info(f"Pod controller started with {self.workers} workers")

    def stop(self) -> None:
        self._stopped.set()
        self.queue.shutdown()
        logger.info("Pod controller stopped")
