"""
Virtual/physical Pod reconciliation engine.

Keeps a tenant-visible (virtual) Pod and its host-cluster (physical) twin
consistent in both directions:
- create path: virtual -> candidate physical Pod
- steady state: deletion propagation, status flow, spec flow
- node binding: mirrors the host scheduler's decision into the virtual API
- host path rewriting for log volumes
"""

from .syncer import PodSyncer
from .core.result import SyncResult

__version__ = "0.1.0"

__all__ = ["PodSyncer", "SyncResult", "__version__"]
