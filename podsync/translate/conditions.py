"""
Readiness gate conditions.

Readiness gates are evaluated by controllers running against the virtual
API, so their conditions are the one part of Pod status that flows virtual
-> physical. Everything else in status flows the other way.
"""

import copy
import logging

from kubernetes import client

from ..core.interfaces import ClusterClient, ConditionMerger

logger = logging.getLogger(__name__)


def _same_condition(a: client.V1PodCondition, b: client.V1PodCondition) -> bool:
    return (a.status, a.reason, a.message) == (b.status, b.reason, b.message)


class ReadinessGateMerger(ConditionMerger):
    """Copies readiness-gate conditions from the virtual to the physical Pod."""

    def __init__(self, physical_client: ClusterClient):
        self.physical_client = physical_client

    def update_conditions(self, ppod: client.V1Pod, vpod: client.V1Pod) -> bool:
        gates = [g.condition_type for g in vpod.spec.readiness_gates or []]
        if not gates:
            return False

        virtual_conditions = {
            c.type: c for c in (vpod.status.conditions if vpod.status else None) or []
        }
        conditions = list((ppod.status.conditions if ppod.status else None) or [])

        changed = False
        for gate in gates:
            wanted = virtual_conditions.get(gate)
            if wanted is None:
                continue
            index = next((i for i, c in enumerate(conditions) if c.type == gate), None)
            if index is None:
                conditions.append(copy.deepcopy(wanted))
                changed = True
            elif not _same_condition(conditions[index], wanted):
                conditions[index] = copy.deepcopy(wanted)
                changed = True

        if not changed:
            return False

        if ppod.status is None:
            ppod.status = client.V1PodStatus()
        ppod.status.conditions = conditions
        logger.info(f"update readiness gate conditions of physical pod {ppod.metadata.namespace}/{ppod.metadata.name}")
        self.physical_client.update_pod_status(ppod)
        return True
