"""
Edit sessions: one per party currently entering data.

Each phase edit is recomputed immediately for the caller but written only
after the local-commit delay passes with no newer edit to the same phase.
Closing a session cancels everything it still has pending, partner pushes
included.
"""
import functools
import logging
from typing import Dict

from transplantflow.schemas.workflow import EvaluationPhase
from transplantflow.core.exceptions import DataEntryError
from transplantflow.services.pair_sync import SYNC, PairSyncCoordinator
from transplantflow.services.scheduler import DebounceScheduler
from transplantflow.services.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)

COMMIT = "commit"


class EditSession:
    def __init__(self, patient_id: str, workflows: WorkflowStore, coordinator: PairSyncCoordinator,
                 scheduler: DebounceScheduler, delay: float = 0.5):
        self.patient_id = patient_id
        self.workflows = workflows
        self.coordinator = coordinator
        self.scheduler = scheduler
        self.delay = delay
        self.closed = False

    async def update_phase(self, phase_id: int, payload) -> EvaluationPhase:
        if self.closed:
            raise DataEntryError(f"Edit session for {self.patient_id} is closed")
        preview = await self.workflows.preview(self.patient_id, phase_id, payload)
        action = functools.partial(self._commit, phase_id, payload.model_copy(deep=True))
        self.scheduler.schedule((COMMIT, self.patient_id, phase_id), self.delay, action)
        return preview

    async def _commit(self, phase_id: int, payload) -> EvaluationPhase:
        phase = await self.workflows.mutate(self.patient_id, phase_id, payload)
        # close() may land while the write is in flight
        if not self.closed:
            self.coordinator.schedule_propagation(self.patient_id, phase_id, phase.payload)
        return phase

    def has_pending(self, phase_id: int) -> bool:
        return self.scheduler.is_pending((COMMIT, self.patient_id, phase_id))

    async def flush(self) -> None:
        """Wait for this session's pending commits and the partner pushes they trigger."""
        await self.scheduler.join((COMMIT, self.patient_id))
        await self.scheduler.join((SYNC, self.patient_id))

    def close(self) -> int:
        cancelled = self.scheduler.cancel_prefix((COMMIT, self.patient_id))
        cancelled += self.coordinator.cancel(self.patient_id)
        self.closed = True
        logger.info("Closed edit session for %s (%d pending write(s) cancelled)", self.patient_id, cancelled)
        return cancelled


class SessionManager:
    def __init__(self, workflows: WorkflowStore, coordinator: PairSyncCoordinator, scheduler: DebounceScheduler,
                 delay: float = 0.5):
        self.workflows = workflows
        self.coordinator = coordinator
        self.scheduler = scheduler
        self.delay = delay
        self._sessions: Dict[str, EditSession] = {}

    def open(self, patient_id: str) -> EditSession:
        session = self._sessions.get(patient_id)
        if session is None or session.closed:
            session = EditSession(patient_id, self.workflows, self.coordinator, self.scheduler, self.delay)
            self._sessions[patient_id] = session
        return session

    def close(self, patient_id: str) -> int:
        session = self._sessions.pop(patient_id, None)
        return session.close() if session is not None else 0

    def close_all(self) -> int:
        return sum(self.close(patient_id) for patient_id in list(self._sessions))
