"""
Prometheus metrics for the pod syncer.

Reconcile timing and outcomes, queue depth and bind attempts. Nothing is
registered until the server is started, so the helpers below are no-ops in
tests and when METRICS_ENABLED is unset (METRICS_PORT defaults to 8080).

Example:
    start_metrics_server(enabled=True, port=9100)

    with track_reconcile("sync") as outcome:
        result = syncer.sync(ppod, vpod)
        outcome["result"] = "requeue" if result.requeue else "ok"
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Generator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

RECONCILE_DURATION: "Histogram" = None  # type: ignore
RECONCILE_TOTAL: "Counter" = None  # type: ignore
QUEUE_DEPTH: "Gauge" = None  # type: ignore
NODE_BIND_TOTAL: "Counter" = None  # type: ignore

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """Register the collectors once; later calls return immediately."""
    global RECONCILE_DURATION, RECONCILE_TOTAL, QUEUE_DEPTH, NODE_BIND_TOTAL
    global _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        # Reconcile duration histogram (labels: entrypoint = sync_down | sync)
        RECONCILE_DURATION = Histogram(
            "podsync_reconcile_duration_seconds",
            "Duration of pod reconciles in seconds",
            labelnames=["entrypoint"],
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        # Reconcile outcomes (result: ok, requeue, conflict, error)
        RECONCILE_TOTAL = Counter(
            "podsync_reconcile_total",
            "Total number of pod reconciles by outcome",
            labelnames=["entrypoint", "result"],
        )

        QUEUE_DEPTH = Gauge(
            "podsync_queue_depth",
            "Number of keys waiting in the reconcile queue",
        )

        # Node bind attempts (result: bound, failed)
        NODE_BIND_TOTAL = Counter(
            "podsync_node_bind_total",
            "Total number of virtual pod bind attempts",
            labelnames=["result"],
        )

        _metrics_initialized = True


def start_metrics_server(enabled: bool, port: int, addr: str = "0.0.0.0") -> None:
    if not enabled:
        logger.info("metrics disabled")
        return

    init_metrics()
    try:
        start_http_server(port, addr=addr)
    except OSError as e:
        # syncing continues without metrics
        logger.error(f"metrics server could not bind {addr}:{port}: {e}")
        return
    logger.info(f"serving metrics on {addr}:{port}/metrics")


@contextmanager
def track_reconcile(entrypoint: str) -> Generator[Dict[str, str], None, None]:
    """
    Time a reconcile and count its outcome.

    The caller sets ``outcome["result"]``; an exception escaping the block
    counts as "error" unless the caller already classified it.
    """
    outcome = {"result": "ok"}
    if RECONCILE_DURATION is None:
        yield outcome
        return

    with RECONCILE_DURATION.labels(entrypoint=entrypoint).time():
        try:
            yield outcome
        except Exception:
            if outcome["result"] == "ok":
                outcome["result"] = "error"
            raise
        finally:
            RECONCILE_TOTAL.labels(entrypoint=entrypoint, result=outcome["result"]).inc()


def set_queue_depth(depth: int) -> None:
    if QUEUE_DEPTH is not None:
        QUEUE_DEPTH.set(depth)


def track_node_bind(result: str) -> None:
    if NODE_BIND_TOTAL is not None:
        NODE_BIND_TOTAL.labels(result=result).inc()
