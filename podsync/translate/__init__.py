"""
Default collaborators: Pod translation, readiness gate conditions and pod
security validation.
"""

from .pods import DefaultPodTranslator, safe_concat_name
from .conditions import ReadinessGateMerger
from .security import PodSecurityValidator

__all__ = [
    "DefaultPodTranslator",
    "safe_concat_name",
    "ReadinessGateMerger",
    "PodSecurityValidator",
]
