"""
Exception types and API error classification for the pod syncer.
"""

from kubernetes.client.exceptions import ApiException


class PodSyncError(Exception):
    """Base class for syncer errors."""
    pass


class ConfigError(PodSyncError):
    """Raised when syncer configuration is invalid (fatal at construction)."""
    pass


class PollTimeoutError(PodSyncError):
    """Raised when a bounded poll reaches its deadline without converging."""
    pass


def _status(exc: BaseException) -> int:
    if isinstance(exc, ApiException):
        return exc.status or 0
    return 0


def is_not_found(exc: BaseException) -> bool:
    return _status(exc) == 404


def is_conflict(exc: BaseException) -> bool:
    """409 caused by a stale resourceVersion or a failed precondition."""
    if _status(exc) != 409:
        return False
    return not is_already_exists(exc)


def is_already_exists(exc: BaseException) -> bool:
    if _status(exc) != 409:
        return False
    reason = getattr(exc, "reason", None) or ""
    body = getattr(exc, "body", None) or ""
    return reason == "AlreadyExists" or '"reason":"AlreadyExists"' in str(body).replace(" ", "")
