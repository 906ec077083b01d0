"""
Reconcile result returned by the engine entry points.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SyncResult:
    """
    Outcome of one reconcile call.

    Fields:
        requeue: Re-run the key soon (rate limited by the queue)
        requeue_after: Re-run the key after a fixed delay in seconds
    """
    requeue: bool = False
    requeue_after: Optional[float] = None

    @property
    def done(self) -> bool:
        return not self.requeue and self.requeue_after is None
