"""
Template Provider: canonical eight-phase workflows per role, and hydration of
persisted workflows against the current template shape.
"""
import copy
import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from transplantflow.core.exceptions import InvalidPhaseError
from transplantflow.schemas.patient import PatientType
from transplantflow.schemas.workflow import (
    ConsultationsPayload,
    DonorImagingPayload,
    EvaluationPhase,
    FinalReviewPayload,
    LegalClearancePayload,
    PartyPreparation,
    PhaseStatus,
    RecipientImagingPayload,
    ScreeningPayload,
    SurgeryPreparationPayload,
    TeamReviewPayload,
    TissueTypingPayload,
)
from transplantflow.services import checklists

logger = logging.getLogger(__name__)

PHASE_COUNT = 8

# Phases whose payload is kept in step between the two parties of a pair
SHARED_PHASE_IDS = frozenset({4, 5, 6, 7, 8})

_PHASE_NAMES = {
    1: "Phase 1: Initial Screening & Comprehensive Lab Work",
    3: "Phase 3: Multi-Disciplinary Consultations",
    4: "Phase 4: Legal Clearance",
    5: "Phase 5: HLA Typing & Crossmatch",
    6: "Phase 6: Final Review & Readiness",
    7: "Phase 7: Transplant Team Review & Meeting",
    8: "Phase 8: Surgery Preparation & Admission",
}

_PHASE_DESCRIPTIONS = {
    4: "Review and approval of legal documentation for the transplant pair.",
    5: "Pair-based tissue typing and compatibility testing.",
    6: "Final cross-match, pre-operative checks, and confirmation of readiness for surgery.",
    7: "Final case presentation, team discussion, and official approval for transplant.",
}

_ROLE_PHASES = {
    PatientType.DONOR: {
        2: ("Phase 2: Advanced Imaging & Surgical Assessment",
            "Detailed anatomical and functional imaging of the kidneys and surgical planning."),
        1: (None, "Comprehensive blood work, urine tests, and baseline health checks for the potential donor."),
        3: (None, "Clearance from various medical specialists including Urology, Cardiology, and Psychiatry."),
        8: (None, "Final pre-operative checks, scheduling, and hospital admission procedures for the donor."),
    },
    PatientType.RECIPIENT: {
        2: ("Phase 2: Cardiac & Vascular Assessment",
            "Evaluation of cardiovascular fitness for surgery and assessment of iliac vessels."),
        1: (None, "Comprehensive blood work, urine tests, and baseline health checks for the recipient."),
        3: (None, "Clearance from various medical specialists including Nephrology, Cardiology, and Psychiatry."),
        8: (None, "Final medical optimization, pre-operative checks, and hospital admission for the recipient."),
    },
}

_SHARED_KINDS = {
    3: "consultations",
    4: "legal_clearance",
    5: "tissue_typing",
    6: "final_review",
    7: "team_review",
    8: "surgery_preparation",
}


def expected_kind(phase_id: int, role: PatientType) -> str:
    """Payload kind that phase ``phase_id`` carries for a party of ``role``."""
    if phase_id == 1:
        return "screening"
    if phase_id == 2:
        return "donor_imaging" if role == PatientType.DONOR else "recipient_imaging"
    try:
        return _SHARED_KINDS[phase_id]
    except KeyError:
        raise InvalidPhaseError(f"Unknown phase id: {phase_id}")


def _payload_for(phase_id: int, role: PatientType):
    is_donor = role == PatientType.DONOR
    if phase_id == 1:
        tests = checklists.donor_screening_tests() if is_donor else checklists.recipient_screening_tests()
        return ScreeningPayload(tests=tests)
    if phase_id == 2:
        if is_donor:
            return DonorImagingPayload()
        return RecipientImagingPayload(imaging_tests=checklists.recipient_imaging_tests())
    if phase_id == 3:
        consultations = checklists.donor_consultations() if is_donor else checklists.recipient_consultations()
        return ConsultationsPayload(consultations=consultations)
    if phase_id == 4:
        return LegalClearancePayload()
    if phase_id == 5:
        return TissueTypingPayload()
    if phase_id == 6:
        items = checklists.donor_clearance_items() if is_donor else checklists.recipient_clearance_items()
        return FinalReviewPayload(clearance_items=items)
    if phase_id == 7:
        return TeamReviewPayload(review_items=checklists.team_review_items())
    # Phase 8 holds both parties' preparation lists; each side's progress reads its own
    return SurgeryPreparationPayload(
        donor_preparation=PartyPreparation(items=checklists.donor_preparation_items()),
        recipient_preparation=PartyPreparation(items=checklists.recipient_preparation_items()),
    )


def instantiate(role: PatientType) -> List[EvaluationPhase]:
    """Fresh eight-phase workflow for ``role``; every phase starts Available."""
    overrides = _ROLE_PHASES[role]
    phases = []
    for phase_id in range(1, PHASE_COUNT + 1):
        name, description = overrides.get(phase_id, (None, None))
        phases.append(
            EvaluationPhase(
                id=phase_id,
                name=name or _PHASE_NAMES[phase_id],
                description=description or _PHASE_DESCRIPTIONS[phase_id],
                status=PhaseStatus.AVAILABLE,
                progress=0,
                payload=_payload_for(phase_id, role),
            )
        )
    return phases


def build_template(role: PatientType) -> List[dict]:
    """The role's template as plain JSON-ready dicts."""
    return [phase.model_dump(mode="json") for phase in instantiate(role)]


def hydrate_object(target: Any, template: Any) -> Any:
    """
    Backfill ``target`` with every key it lacks from ``template``.

    Nested dicts present on both sides are merged recursively; lists and scalars
    already in ``target`` are kept as they are. Neither argument is modified.
    """
    if not isinstance(target, dict) or not isinstance(template, dict):
        return copy.deepcopy(target)
    merged = {}
    for key, value in target.items():
        if key in template and isinstance(value, dict) and isinstance(template[key], dict):
            merged[key] = hydrate_object(value, template[key])
        else:
            merged[key] = copy.deepcopy(value)
    for key, default in template.items():
        if key not in merged:
            merged[key] = copy.deepcopy(default)
    return merged


def unlock_pass(phases: List[EvaluationPhase]) -> List[EvaluationPhase]:
    """Lift every Locked status to Available, except phases held by a session lock."""
    for phase in phases:
        if phase.status == PhaseStatus.LOCKED and not phase.locked:
            phase.status = PhaseStatus.AVAILABLE
    return phases


def hydrate_workflow(stored: Optional[List[dict]], role: PatientType) -> List[EvaluationPhase]:
    """
    Rebuild a typed workflow from a persisted phase list.

    Missing phases are taken from the template, unknown ones are dropped, and a
    stored payload of the wrong kind for its phase id is replaced by the
    template's default. The unlock pass runs on every call.
    """
    template = build_template(role)
    if not stored:
        return unlock_pass([EvaluationPhase.model_validate(t) for t in template])

    by_id = {}
    for raw in stored:
        if isinstance(raw, dict) and isinstance(raw.get("id"), int):
            by_id[raw["id"]] = raw

    phases = []
    for template_phase in template:
        phase_id = template_phase["id"]
        raw = by_id.get(phase_id)
        if raw is None:
            logger.info("Phase %s missing from stored workflow; using template", phase_id)
            merged = copy.deepcopy(template_phase)
        else:
            raw = dict(raw)
            payload = raw.get("payload")
            kind = payload.get("kind") if isinstance(payload, dict) else None
            if not isinstance(payload, dict) or kind not in (None, template_phase["payload"]["kind"]):
                logger.warning("Phase %s payload kind %r does not match template; resetting payload", phase_id, kind)
                raw.pop("payload", None)
            merged = hydrate_object(raw, template_phase)
        try:
            phases.append(EvaluationPhase.model_validate(merged))
        except ValidationError as e:
            raise InvalidPhaseError(f"Stored phase {phase_id} is malformed: {e}") from e
    return unlock_pass(phases)
