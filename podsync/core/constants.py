"""
Named constants shared by the reconcile engine.
"""

# Grace period used when the virtual Pod does not set one.
DEFAULT_GRACE_PERIOD_SECONDS = 30
ZERO_GRACE_PERIOD_SECONDS = 0

# Retry delay when a Pod names a node that is not (yet) in the virtual cluster.
MISSING_NODE_REQUEUE_SECONDS = 15.0

# Bind convergence poll.
BIND_POLL_INTERVAL_SECONDS = 0.05
BIND_POLL_TIMEOUT_SECONDS = 2.0

# Host path rewriting.
LOG_HOSTPATH_PATH = "/var/log"
POD_LOGGING_HOSTPATH_PATH = "/var/log/pods"
PHYSICAL_LOG_VOLUME_NAME_SUFFIX = "podsync-physical"
PHYSICAL_LOG_VOLUME_MOUNT_PATH = "/var/podsync/physical/log/pods"
VIRTUAL_LOGS_PATH_TEMPLATE = "/tmp/podsync/{namespace}/{name}/log"

# Object metadata written by the translator.
ANNOTATION_PREFIX = "podsync.io"
NAME_ANNOTATION = f"{ANNOTATION_PREFIX}/object-name"
NAMESPACE_ANNOTATION = f"{ANNOTATION_PREFIX}/object-namespace"
UID_ANNOTATION = f"{ANNOTATION_PREFIX}/object-uid"
MANAGED_BY_LABEL = f"{ANNOTATION_PREFIX}/managed-by"
NAMESPACE_LABEL = f"{ANNOTATION_PREFIX}/namespace"

# Hosts rewrite init container (not part of the tenant-visible container set).
HOSTS_REWRITTEN_ANNOTATION = f"{ANNOTATION_PREFIX}/hosts-rewritten"
HOSTS_REWRITE_CONTAINER_NAME = "podsync-rewrite-hosts"
HOSTS_REWRITE_IMAGE = "library/alpine:3.20"

# Index registered by the pod syncer.
INDEX_BY_PHYSICAL_NAME = "pods-by-physical-name"

# Event types / reasons.
EVENT_WARNING = "Warning"
EVENT_NORMAL = "Normal"
REASON_SYNC_ERROR = "SyncError"
REASON_SYNC_WARNING = "SyncWarning"
REASON_PSS_VIOLATION = "PodSecurityStandardsViolation"
