import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel

from transplantflow.api.deps import Services, get_services
from transplantflow.schemas.patient import Patient, PatientCreate
from transplantflow.schemas.workflow import EvaluationPhase, PhaseUpdate

logger = logging.getLogger(__name__)
router = APIRouter()

PhaseId = Path(ge=1, le=8)


class SummaryRequest(BaseModel):
    kind: Literal["evaluation", "clearance", "risk"] = "evaluation"
    include_tests: bool = True


class SummaryResponse(BaseModel):
    summary: str


@router.get("/", response_model=List[Patient])
async def list_patients(services: Services = Depends(get_services)):
    return await services.registry.list_patients()


@router.post("/", response_model=Patient, status_code=status.HTTP_201_CREATED)
async def register_patient(data: PatientCreate, services: Services = Depends(get_services)):
    return await services.registry.register_patient(data)


@router.get("/{patient_id}", response_model=Patient)
async def get_patient(patient_id: str, services: Services = Depends(get_services)):
    return await services.registry.get_patient(patient_id)


@router.get("/{patient_id}/workflow", response_model=List[EvaluationPhase])
async def get_workflow(patient_id: str, services: Services = Depends(get_services)):
    """The patient's eight phases, created from the template on first access."""
    return await services.workflows.get_workflow(patient_id)


@router.put("/{patient_id}/workflow/phases/{phase_id}", response_model=EvaluationPhase)
async def update_phase(
    patient_id: str,
    body: PhaseUpdate,
    phase_id: int = PhaseId,
    services: Services = Depends(get_services),
):
    """
    Edit one phase payload.

    The response is the phase recomputed from this payload; the write itself
    happens after the local-commit delay, and shared phases reach the partner
    after the sync delay.
    """
    await services.registry.get_patient(patient_id)
    session = services.sessions.open(patient_id)
    return await session.update_phase(phase_id, body.payload)


@router.post("/{patient_id}/workflow/phases/{phase_id}/complete", response_model=EvaluationPhase)
async def complete_phase(patient_id: str, phase_id: int = PhaseId, services: Services = Depends(get_services)):
    return await services.workflows.complete_phase(patient_id, phase_id)


@router.post("/{patient_id}/workflow/phases/{phase_id}/lock", response_model=EvaluationPhase)
async def lock_phase(patient_id: str, phase_id: int = PhaseId, services: Services = Depends(get_services)):
    return await services.workflows.lock_phase(patient_id, phase_id)


@router.post("/{patient_id}/workflow/phases/{phase_id}/unlock", response_model=EvaluationPhase)
async def unlock_phase(patient_id: str, phase_id: int = PhaseId, services: Services = Depends(get_services)):
    return await services.workflows.unlock_phase(patient_id, phase_id)


@router.delete("/{patient_id}/session")
async def close_session(patient_id: str, services: Services = Depends(get_services)):
    """End the patient's edit session; pending local writes and partner pushes are dropped."""
    await services.registry.get_patient(patient_id)
    return {"patient_id": patient_id, "cancelled": services.sessions.close(patient_id)}


@router.post("/{patient_id}/summary", response_model=SummaryResponse)
async def generate_summary(
    patient_id: str,
    request: SummaryRequest = SummaryRequest(),
    services: Services = Depends(get_services),
):
    patient = await services.registry.get_patient(patient_id)
    if request.kind == "risk":
        return SummaryResponse(summary=await services.summaries.risk_assessment(patient))

    workflow = await services.workflows.get_workflow(patient_id)
    if request.kind == "clearance":
        consultations = next(p.payload.consultations for p in workflow if p.id == 3)
        return SummaryResponse(summary=await services.summaries.clearance_summary(patient, consultations))

    tests = next(p.payload.tests for p in workflow if p.id == 1) if request.include_tests else None
    return SummaryResponse(summary=await services.summaries.evaluation_summary(patient, workflow, tests))
