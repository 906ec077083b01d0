"""
Logging setup for the pod syncer.

Records are written to stdout as JSON (or plain text for local runs). Each
record carries a ``trace_id``, the ``namespace/name`` key of the virtual Pod
being reconciled, so one reconcile's branch decisions can be grepped
together.

PODSYNC_LOG_LEVEL (default INFO) and PODSYNC_LOG_FORMAT (json or text,
default json) are read when no explicit value is passed.
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

NO_TRACE = "N/A"

# libraries that log every request at INFO
_QUIET_LOGGERS = ("urllib3", "kubernetes", "kopf")


def _formatter(fmt: str) -> logging.Formatter:
    if fmt == "text":
        return logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s [%(trace_id)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(trace_id)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
    )


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Replace the root handlers with one stdout handler; safe to call again."""
    level_name = (level or os.getenv("PODSYNC_LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(level_name)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    fmt = (log_format or os.getenv("PODSYNC_LOG_FORMAT") or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(fmt))
    handler.addFilter(TraceIDFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(resolved)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))


def get_logger(name: str, trace_id: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Logger bound to one reconcile key.

    Args:
        name: module name
        trace_id: ``namespace/name`` of the virtual Pod, if any
    """
    return logging.LoggerAdapter(logging.getLogger(name), {"trace_id": trace_id or NO_TRACE})


def pod_trace_id(pod) -> str:
    meta = pod.metadata
    return f"{meta.namespace}/{meta.name}"


class TraceIDFilter(logging.Filter):
    """Fills in trace_id for records from loggers used without an adapter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "trace_id"):
            record.trace_id = NO_TRACE
        return True
