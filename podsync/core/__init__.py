"""
Core primitives for the pod syncer.

- errors: exception types and ApiException classifiers
- constants: grace periods, reserved paths, annotation keys
- interfaces: collaborator contracts (clients, translator, recorder, ...)
- poll: bounded retry-with-timeout
- indexer: in-memory object indices
- result: SyncResult
"""

from .errors import (
    PodSyncError,
    ConfigError,
    PollTimeoutError,
    is_not_found,
    is_conflict,
    is_already_exists,
)
from .interfaces import (
    ClusterClient,
    EventRecorder,
    PodTranslator,
    ConditionMerger,
    SecurityValidator,
    SyncWriter,
)
from .indexer import Indexer, object_key
from .poll import poll_until
from .result import SyncResult

__all__ = [
    "PodSyncError",
    "ConfigError",
    "PollTimeoutError",
    "is_not_found",
    "is_conflict",
    "is_already_exists",
    "ClusterClient",
    "EventRecorder",
    "PodTranslator",
    "ConditionMerger",
    "SecurityValidator",
    "SyncWriter",
    "Indexer",
    "object_key",
    "poll_until",
    "SyncResult",
]
