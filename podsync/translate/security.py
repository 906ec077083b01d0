"""
Pod security standard validation.

A reduced implementation of the upstream Pod Security Standards:

- privileged: everything allowed
- baseline: no host namespaces, privileged containers, hostPath volumes,
  host ports or non-default capabilities
- restricted: baseline plus non-root, no privilege escalation, all
  capabilities dropped and a RuntimeDefault/Localhost seccomp profile

Violations are reported as a warning event on the virtual Pod.
"""

import logging
from typing import List, Optional

from kubernetes import client

from ..core.constants import EVENT_WARNING, REASON_PSS_VIOLATION
from ..core.errors import ConfigError
from ..core.interfaces import EventRecorder, SecurityValidator

logger = logging.getLogger(__name__)

PRIVILEGED = "privileged"
BASELINE = "baseline"
RESTRICTED = "restricted"
LEVELS = (PRIVILEGED, BASELINE, RESTRICTED)

BASELINE_CAPABILITIES = {
    "AUDIT_WRITE", "CHOWN", "DAC_OVERRIDE", "FOWNER", "FSETID", "KILL", "MKNOD",
    "NET_BIND_SERVICE", "SETFCAP", "SETGID", "SETPCAP", "SETUID", "SYS_CHROOT",
}
RESTRICTED_SECCOMP = {"RuntimeDefault", "Localhost"}


def _all_containers(spec: client.V1PodSpec) -> list:
    return list(spec.init_containers or []) + list(spec.containers or []) + list(spec.ephemeral_containers or [])


def baseline_violations(spec: client.V1PodSpec) -> List[str]:
    violations = []
    if spec.host_network:
        violations.append("hostNetwork=true")
    if spec.host_pid:
        violations.append("hostPID=true")
    if spec.host_ipc:
        violations.append("hostIPC=true")
    for volume in spec.volumes or []:
        if volume.host_path is not None:
            violations.append(f"volume {volume.name} uses hostPath")
    for container in _all_containers(spec):
        sc = container.security_context
        if sc is not None and sc.privileged:
            violations.append(f"container {container.name} is privileged")
        for port in container.ports or []:
            if port.host_port:
                violations.append(f"container {container.name} uses hostPort {port.host_port}")
        added = set(sc.capabilities.add or []) if sc is not None and sc.capabilities else set()
        extra = sorted(added - BASELINE_CAPABILITIES)
        if extra:
            violations.append(f"container {container.name} adds capabilities {','.join(extra)}")
    return violations


def restricted_violations(spec: client.V1PodSpec) -> List[str]:
    violations = []
    pod_sc = spec.security_context
    pod_non_root = pod_sc.run_as_non_root if pod_sc is not None else None
    pod_seccomp = pod_sc.seccomp_profile.type if pod_sc is not None and pod_sc.seccomp_profile else None

    for container in _all_containers(spec):
        sc = container.security_context or client.V1SecurityContext()
        non_root = sc.run_as_non_root if sc.run_as_non_root is not None else pod_non_root
        if not non_root:
            violations.append(f"container {container.name} must set runAsNonRoot=true")
        if sc.allow_privilege_escalation is not False:
            violations.append(f"container {container.name} must set allowPrivilegeEscalation=false")
        dropped = set(sc.capabilities.drop or []) if sc.capabilities else set()
        if "ALL" not in dropped:
            violations.append(f"container {container.name} must drop ALL capabilities")
        added = set(sc.capabilities.add or []) if sc.capabilities else set()
        if added - {"NET_BIND_SERVICE"}:
            violations.append(f"container {container.name} may only add NET_BIND_SERVICE")
        seccomp = sc.seccomp_profile.type if sc.seccomp_profile else pod_seccomp
        if seccomp not in RESTRICTED_SECCOMP:
            violations.append(f"container {container.name} must use a RuntimeDefault or Localhost seccomp profile")
    return violations


class PodSecurityValidator(SecurityValidator):
    """
    Validates virtual Pods against a pod security level.

    Raises:
        ConfigError: unknown level
    """

    def __init__(self, level: str, recorder: Optional[EventRecorder] = None):
        if level not in LEVELS:
            raise ConfigError(f"unknown pod security standard {level!r}, expected one of {', '.join(LEVELS)}")
        self.level = level
        self.recorder = recorder

    def violations(self, vpod: client.V1Pod) -> List[str]:
        if self.level == PRIVILEGED:
            return []
        violations = baseline_violations(vpod.spec)
        if self.level == RESTRICTED:
            violations.extend(restricted_violations(vpod.spec))
        return violations

    def is_valid(self, vpod: client.V1Pod) -> bool:
        violations = self.violations(vpod)
        if not violations:
            return True
        if self.recorder is not None:
            self.recorder.eventf(
                vpod,
                EVENT_WARNING,
                REASON_PSS_VIOLATION,
                "Pod violates %s pod security standard: %s",
                self.level,
                "; ".join(violations),
            )
        return False
