import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import BaseModel

from transplantflow.api.deps import Services, get_services
from transplantflow.schemas.patient import Pair, PairCreate
from transplantflow.schemas.workflow import EvaluationPhase, HLACompatibility
from transplantflow.services.hla_extraction import merge_extracted_hla
from transplantflow.services.workflow_store import TISSUE_TYPING_PHASE_ID

logger = logging.getLogger(__name__)
router = APIRouter()


class PairWorkflows(BaseModel):
    pair: Pair
    donor: List[EvaluationPhase]
    recipient: List[EvaluationPhase]


class PairSummaryResponse(BaseModel):
    summary: str


@router.get("/", response_model=List[Pair])
async def list_pairs(services: Services = Depends(get_services)):
    return await services.registry.list_pairs()


@router.post("/", response_model=Pair, status_code=status.HTTP_201_CREATED)
async def create_pair(data: PairCreate, services: Services = Depends(get_services)):
    return await services.registry.create_pair(data.donor_id, data.recipient_id)


@router.get("/{pair_id}", response_model=Pair)
async def get_pair(pair_id: str, services: Services = Depends(get_services)):
    return await services.registry.get_pair(pair_id)


@router.get("/{pair_id}/workflows", response_model=PairWorkflows)
async def get_pair_workflows(pair_id: str, services: Services = Depends(get_services)):
    pair = await services.registry.get_pair(pair_id)
    return PairWorkflows(
        pair=pair,
        donor=await services.workflows.get_workflow(pair.donor_id),
        recipient=await services.workflows.get_workflow(pair.recipient_id),
    )


@router.get("/{pair_id}/compatibility", response_model=HLACompatibility)
async def get_compatibility(pair_id: str, services: Services = Depends(get_services)):
    """Compatibility as recorded in the donor's tissue-typing phase."""
    pair = await services.registry.get_pair(pair_id)
    phase = await services.workflows.get_phase(pair.donor_id, TISSUE_TYPING_PHASE_ID)
    return phase.payload.hla_compatibility


@router.post("/{pair_id}/summary", response_model=PairSummaryResponse)
async def generate_pair_summary(pair_id: str, services: Services = Depends(get_services)):
    pair = await services.registry.get_pair(pair_id)
    donor = await services.registry.get_patient(pair.donor_id)
    recipient = await services.registry.get_patient(pair.recipient_id)
    summary = await services.summaries.pair_summary(
        donor,
        recipient,
        await services.workflows.get_workflow(donor.id),
        await services.workflows.get_workflow(recipient.id),
    )
    return PairSummaryResponse(summary=summary)


@router.post("/{pair_id}/hla/extract", response_model=EvaluationPhase)
async def extract_hla(
    pair_id: str,
    files: List[UploadFile] = File(...),
    services: Services = Depends(get_services),
):
    """
    Extract HLA typing and crossmatch results from uploaded reports and merge
    them into the pair's tissue-typing phase. Only non-empty extracted values
    are applied.
    """
    pair = await services.registry.get_pair(pair_id)
    reports = [(f.filename or "report", await f.read()) for f in files]
    extracted = await services.extraction.extract(reports)

    current = await services.workflows.get_phase(pair.donor_id, TISSUE_TYPING_PHASE_ID)
    merged = merge_extracted_hla(current.payload, extracted)
    phase = await services.workflows.mutate(pair.donor_id, TISSUE_TYPING_PHASE_ID, merged)
    services.coordinator.schedule_propagation(pair.donor_id, TISSUE_TYPING_PHASE_ID, phase.payload)
    logger.info("Merged extracted HLA data from %d report(s) into %s", len(reports), pair_id)
    return phase
