"""
Pair Sync Coordinator.

After a party commits a shared phase, the payload is pushed to the partner's
stored workflow once the propagation delay passes without a newer commit. There
is no merge: the partner's phase payload is overwritten whole, last write wins.
"""
import functools
import logging

from transplantflow.services.registry import PatientRegistry
from transplantflow.services.scheduler import DebounceScheduler
from transplantflow.services.templates import SHARED_PHASE_IDS
from transplantflow.services.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)

SYNC = "sync"


def is_shared(phase_id: int) -> bool:
    return phase_id in SHARED_PHASE_IDS


class PairSyncCoordinator:
    def __init__(self, workflows: WorkflowStore, registry: PatientRegistry, scheduler: DebounceScheduler,
                 delay: float = 1.5):
        self.workflows = workflows
        self.registry = registry
        self.scheduler = scheduler
        self.delay = delay

    def schedule_propagation(self, patient_id: str, phase_id: int, payload) -> bool:
        """Queue a push of ``payload`` to the partner, replacing any push still waiting."""
        if not is_shared(phase_id):
            return False
        action = functools.partial(self.propagate, patient_id, phase_id, payload.model_copy(deep=True))
        self.scheduler.schedule((SYNC, patient_id, phase_id), self.delay, action)
        logger.debug("Partner sync for phase %s of %s scheduled in %ss", phase_id, patient_id, self.delay)
        return True

    async def propagate(self, patient_id: str, phase_id: int, payload) -> bool:
        partner = await self.registry.get_partner(patient_id)
        if partner is None:
            logger.debug("%s has no partner; nothing to sync for phase %s", patient_id, phase_id)
            return False
        changed = await self.workflows.apply_partner_payload(partner.id, phase_id, payload)
        if not changed:
            logger.info("Phase %s of %s already matches %s; sync skipped", phase_id, partner.id, patient_id)
        return changed

    def cancel(self, patient_id: str) -> int:
        return self.scheduler.cancel_prefix((SYNC, patient_id))
