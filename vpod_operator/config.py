"""
Operator configuration from environment variables.

Everything that can be wrong with the configuration is detected here, at
startup, never per reconcile.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from kubernetes import client

from podsync.core.constants import VIRTUAL_LOGS_PATH_TEMPLATE
from podsync.core.errors import ConfigError
from podsync.translate.security import LEVELS as PSS_LEVELS

logger = logging.getLogger(__name__)

TOLERATION_EFFECTS = ("NoSchedule", "PreferNoSchedule", "NoExecute")
_LABEL_KEY = re.compile(r"^([a-z0-9]([-a-z0-9.]*[a-z0-9])?/)?[A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?$")
_LABEL_VALUE = re.compile(r"^([A-Za-z0-9]([-A-Za-z0-9_.]*[A-Za-z0-9])?)?$")
_SET_OPERATOR = re.compile(r"\s(in|notin)\s*\(")


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _read_namespace() -> str:
    env_ns = os.getenv("POD_NAMESPACE") or os.getenv("WATCH_NAMESPACE")
    if env_ns:
        return env_ns
    try:
        with open("/var/run/secrets/kubernetes.io/serviceaccount/namespace", "r") as f:
            return f.read().strip()
    except OSError:
        return "default"


def parse_node_selector(selector: str) -> Dict[str, str]:
    """
    Parse a label selector that may only contain equality requirements.

    Raises:
        ConfigError: malformed syntax, set-based expressions or no pairs
    """
    if _SET_OPERATOR.search(selector):
        raise ConfigError("match expressions in the node selector are not supported")

    labels: Dict[str, str] = {}
    for raw in selector.split(","):
        requirement = raw.strip()
        if not requirement:
            continue
        if requirement.startswith("!") or "!=" in requirement:
            raise ConfigError("match expressions in the node selector are not supported")
        if "=" not in requirement:
            # bare key means "exists"
            raise ConfigError("match expressions in the node selector are not supported")
        key, _, value = requirement.partition("==" if "==" in requirement else "=")
        key, value = key.strip(), value.strip()
        if not _LABEL_KEY.match(key) or not _LABEL_VALUE.match(value) or len(value) > 63:
            raise ConfigError(f"parse node selector: invalid requirement {requirement!r}")
        labels[key] = value

    if not labels:
        raise ConfigError("at least one label=value pair has to be defined in the label selector")
    return labels


def parse_toleration(raw: str) -> client.V1Toleration:
    """
    Parse ``key[=value][:Effect]`` into a toleration.

    Without a value the operator is Exists, otherwise Equal.
    """
    spec = raw.strip()
    if not spec:
        raise ValueError("empty toleration")

    effect = None
    if ":" in spec:
        spec, effect = spec.rsplit(":", 1)
        if effect not in TOLERATION_EFFECTS:
            raise ValueError(f"invalid toleration effect {effect!r}")

    if "=" in spec:
        key, value = spec.split("=", 1)
        operator = "Equal"
    else:
        key, value, operator = spec, None, "Exists"

    if key and not _LABEL_KEY.match(key):
        raise ValueError(f"invalid toleration key {key!r}")
    if not key and operator == "Equal":
        raise ValueError("toleration with a value needs a key")
    return client.V1Toleration(key=key or None, operator=operator, value=value, effect=effect)


def parse_tolerations(values: List[str]) -> List[client.V1Toleration]:
    tolerations = []
    for raw in values:
        try:
            tolerations.append(parse_toleration(raw))
        except ValueError as e:
            logger.warning(f"ignoring toleration {raw!r}: {e}")
    return tolerations


@dataclass
class SyncerConfig:
    service_name: str
    target_namespace: str
    name: str = ""
    enable_scheduler: bool = False
    enforce_node_selector: bool = True
    node_selector: str = ""
    tolerations: List[str] = field(default_factory=list)
    pod_security_standard: str = ""
    rewrite_hosts: bool = True
    virtual_kubeconfig: Optional[str] = None
    physical_kubeconfig: Optional[str] = None
    workers: int = 4
    resync_seconds: float = 60.0

    def __post_init__(self):
        if not self.name:
            self.name = self.service_name
        if self.workers < 1:
            raise ConfigError("PODSYNC_WORKERS must be at least 1")
        if self.pod_security_standard and self.pod_security_standard not in PSS_LEVELS:
            raise ConfigError(f"unknown pod security standard {self.pod_security_standard!r}")
        # parse eagerly so a broken selector stops the operator at startup
        self.parsed_node_selector()

    @staticmethod
    def from_env() -> "SyncerConfig":
        try:
            workers = int(os.getenv("PODSYNC_WORKERS", "4"))
            resync_seconds = float(os.getenv("PODSYNC_RESYNC_SECONDS", "60"))
        except ValueError as e:
            raise ConfigError(f"invalid numeric setting: {e}") from e

        tolerations = [t for t in os.getenv("PODSYNC_TOLERATIONS", "").split(";") if t.strip()]
        return SyncerConfig(
            service_name=os.getenv("PODSYNC_SERVICE_NAME", "podsync"),
            target_namespace=os.getenv("PODSYNC_TARGET_NAMESPACE") or _read_namespace(),
            name=os.getenv("PODSYNC_NAME", ""),
            enable_scheduler=_flag("PODSYNC_ENABLE_SCHEDULER", "0"),
            enforce_node_selector=_flag("PODSYNC_ENFORCE_NODE_SELECTOR", "1"),
            node_selector=os.getenv("PODSYNC_NODE_SELECTOR", ""),
            tolerations=tolerations,
            pod_security_standard=os.getenv("PODSYNC_POD_SECURITY_STANDARD", ""),
            rewrite_hosts=_flag("PODSYNC_REWRITE_HOSTS", "1"),
            virtual_kubeconfig=os.getenv("PODSYNC_VIRTUAL_KUBECONFIG") or None,
            physical_kubeconfig=os.getenv("PODSYNC_PHYSICAL_KUBECONFIG") or None,
            workers=workers,
            resync_seconds=resync_seconds,
        )

    def parsed_node_selector(self) -> Optional[Dict[str, str]]:
        if not self.enforce_node_selector or not self.node_selector:
            return None
        return parse_node_selector(self.node_selector)

    def parsed_tolerations(self) -> List[client.V1Toleration]:
        return parse_tolerations(self.tolerations)

    @property
    def virtual_logs_path(self) -> str:
        return VIRTUAL_LOGS_PATH_TEMPLATE.format(namespace=self.target_namespace, name=self.name)

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "service_name": self.service_name,
            "target_namespace": self.target_namespace,
            "enable_scheduler": self.enable_scheduler,
            "node_selector": self.parsed_node_selector(),
            "tolerations": [t.to_dict() for t in self.parsed_tolerations()],
            "pod_security_standard": self.pod_security_standard or None,
            "rewrite_hosts": self.rewrite_hosts,
            "virtual_logs_path": self.virtual_logs_path,
            "workers": self.workers,
            "resync_seconds": self.resync_seconds,
        }
