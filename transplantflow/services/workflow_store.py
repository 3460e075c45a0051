"""
Workflow State Store.

Owns each patient's eight-phase workflow: lazy creation from the template,
hydration on every load, and payload mutations routed through the Progress
Calculator before the whole list is written back.
"""
import asyncio
import logging
from collections import defaultdict
from typing import Dict, List

from transplantflow.core.exceptions import DataEntryError, InvalidPhaseError
from transplantflow.schemas.patient import Patient
from transplantflow.schemas.workflow import (
    ConsultationsPayload,
    EvaluationPhase,
    PhaseStatus,
    TissueTypingPayload,
)
from transplantflow.services import progress, templates
from transplantflow.services.data_entry import check_consultation
from transplantflow.services.record_store import RecordStore, workflow_key
from transplantflow.services.registry import PatientRegistry

logger = logging.getLogger(__name__)

TISSUE_TYPING_PHASE_ID = 5


def _find_phase(phases: List[EvaluationPhase], phase_id: int) -> EvaluationPhase:
    for phase in phases:
        if phase.id == phase_id:
            return phase
    raise InvalidPhaseError(f"Unknown phase id: {phase_id}")


class WorkflowStore:
    """
    Read-modify-write access to persisted workflows.

    Writes for one patient are serialised in-process so that a partner sync
    and a local commit never interleave half way; across writers the contract
    is still last write wins per phase payload.
    """

    def __init__(self, store: RecordStore, registry: PatientRegistry):
        self.store = store
        self.registry = registry
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _load(self, patient: Patient) -> List[EvaluationPhase]:
        """Load or create the workflow; the caller holds the patient's lock."""
        raw = await self.store.get(workflow_key(patient.id))
        if raw is None:
            phases = templates.instantiate(patient.type)
            await self._save(patient.id, phases)
            logger.info("Created workflow for %s from the %s template", patient.id, patient.type.value)
            return phases
        return templates.hydrate_workflow(raw, patient.type)

    async def _read(self, patient: Patient) -> List[EvaluationPhase]:
        """Load without the lock, taking it only to create a missing workflow."""
        raw = await self.store.get(workflow_key(patient.id))
        if raw is None:
            async with self._locks[patient.id]:
                return await self._load(patient)
        return templates.hydrate_workflow(raw, patient.type)

    async def _save(self, patient_id: str, phases: List[EvaluationPhase]) -> None:
        await self.store.set(workflow_key(patient_id), [p.model_dump(mode="json") for p in phases])

    async def get_workflow(self, patient_id: str) -> List[EvaluationPhase]:
        patient = await self.registry.get_patient(patient_id)
        return await self._read(patient)

    async def get_phase(self, patient_id: str, phase_id: int) -> EvaluationPhase:
        return _find_phase(await self.get_workflow(patient_id), phase_id)

    async def save_workflow(self, patient_id: str, phases: List[EvaluationPhase]) -> None:
        await self.registry.get_patient(patient_id)
        async with self._locks[patient_id]:
            await self._save(patient_id, phases)

    def validate_payload(self, patient: Patient, phase_id: int, payload) -> None:
        expected = templates.expected_kind(phase_id, patient.type)
        if payload.kind != expected:
            raise InvalidPhaseError(
                f"Phase {phase_id} of a {patient.type.value.lower()} takes a {expected!r} payload, not {payload.kind!r}"
            )
        if isinstance(payload, ConsultationsPayload):
            for consultation in payload.consultations:
                check_consultation(consultation)

    async def preview(self, patient_id: str, phase_id: int, payload) -> EvaluationPhase:
        """The phase as it would look after ``payload`` is applied; nothing is written."""
        patient = await self.registry.get_patient(patient_id)
        self.validate_payload(patient, phase_id, payload)
        phases = await self._read(patient)
        phase = _find_phase(phases, phase_id)
        phase.payload = payload.model_copy(deep=True)
        progress.refresh_workflow(phases, phase_id, patient)
        return phase

    async def mutate(self, patient_id: str, phase_id: int, payload) -> EvaluationPhase:
        """Replace one phase's payload, recompute it and persist the workflow."""
        patient = await self.registry.get_patient(patient_id)
        self.validate_payload(patient, phase_id, payload)
        async with self._locks[patient_id]:
            phases = await self._load(patient)
            phase = _find_phase(phases, phase_id)
            phase.payload = payload.model_copy(deep=True)
            progress.refresh_workflow(phases, phase_id, patient)
            await self._save(patient_id, phases)
        logger.info("Committed phase %s for %s: %s%% %s", phase_id, patient_id, phase.progress, phase.status.value)
        if isinstance(phase.payload, TissueTypingPayload):
            await self._record_pair_result(patient_id, phase.payload)
        return phase

    async def apply_partner_payload(self, patient_id: str, phase_id: int, payload) -> bool:
        """
        Overwrite one shared phase's payload in ``patient_id``'s workflow.

        Returns False (and writes nothing) if the stored payload already equals
        ``payload``. The phase status is recomputed against this patient's own
        lock state and demographics.
        """
        patient = await self.registry.get_patient(patient_id)
        self.validate_payload(patient, phase_id, payload)
        async with self._locks[patient_id]:
            phases = await self._load(patient)
            phase = _find_phase(phases, phase_id)
            if phase.payload.model_dump() == payload.model_dump():
                return False
            phase.payload = payload.model_copy(deep=True)
            progress.refresh_workflow(phases, phase_id, patient)
            await self._save(patient_id, phases)
        logger.info("Applied partner payload to phase %s for %s (status %s)", phase_id, patient_id, phase.status.value)
        return True

    async def complete_phase(self, patient_id: str, phase_id: int) -> EvaluationPhase:
        """Coordinator sign-off: force the phase to 100% Completed."""
        patient = await self.registry.get_patient(patient_id)
        async with self._locks[patient_id]:
            phases = await self._load(patient)
            phase = _find_phase(phases, phase_id)
            if phase.locked:
                raise DataEntryError(f"Phase {phase_id} is locked for {patient_id}; unlock it before completing")
            phase.progress = 100
            phase.status = PhaseStatus.COMPLETED
            progress.unlock_next(phases, phase_id)
            await self._save(patient_id, phases)
        logger.info("Phase %s signed off as completed for %s", phase_id, patient_id)
        return phase

    async def lock_phase(self, patient_id: str, phase_id: int) -> EvaluationPhase:
        patient = await self.registry.get_patient(patient_id)
        async with self._locks[patient_id]:
            phases = await self._load(patient)
            phase = _find_phase(phases, phase_id)
            phase.locked = True
            phase.status = PhaseStatus.LOCKED
            await self._save(patient_id, phases)
        logger.info("Phase %s locked for %s", phase_id, patient_id)
        return phase

    async def unlock_phase(self, patient_id: str, phase_id: int) -> EvaluationPhase:
        patient = await self.registry.get_patient(patient_id)
        async with self._locks[patient_id]:
            phases = await self._load(patient)
            phase = _find_phase(phases, phase_id)
            phase.locked = False
            progress.refresh_workflow(phases, phase_id, patient)
            await self._save(patient_id, phases)
        logger.info("Phase %s unlocked for %s (status %s)", phase_id, patient_id, phase.status.value)
        return phase

    async def _record_pair_result(self, patient_id: str, payload: TissueTypingPayload) -> None:
        pair = await self.registry.find_pair_for_patient(patient_id)
        if pair is not None:
            await self.registry.update_pair_compatibility(pair.id, payload.final_assessment.final_result)
