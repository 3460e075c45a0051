"""
Progress Calculator.

One pure function per payload kind maps a phase payload (plus the owning
party's demographics) to ``PhaseProgress``. ``refresh_phase`` applies the
result to a phase, honouring its session lock, and ``refresh_workflow`` adds
the unlock-next transition on completion.
"""
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from transplantflow.core.exceptions import InvalidPhaseError
from transplantflow.schemas.patient import Patient, PatientType
from transplantflow.schemas.workflow import (
    ConsultationsPayload,
    DonorImagingPayload,
    EvaluationPhase,
    FinalReviewPayload,
    LegalClearancePayload,
    MedicalTestItem,
    PhaseStatus,
    RecipientImagingPayload,
    ScreeningPayload,
    SurgeryPreparationPayload,
    TeamReviewPayload,
    TissueTypingPayload,
)
from transplantflow.services import data_entry, normal_range
from transplantflow.services.hla_compatibility import calculate_compatibility

CT_FIELDS = (
    "date_performed", "left_kidney_length", "left_kidney_width", "left_kidney_volume",
    "left_main_artery_diameter", "right_kidney_length", "right_kidney_width", "right_kidney_volume",
    "right_main_artery_diameter", "left_renal_arteries", "left_renal_veins", "right_renal_arteries",
    "right_renal_veins", "accessory_vessels", "cortical_thickness", "parenchymal_quality",
    "calcification_atherosclerosis", "anatomical_variations", "clinical_interpretation",
    "recommended_kidney", "recommended_approach", "report_file_name",
)
DTPA_FIELDS = ("date_performed", "left_kidney_gfr", "right_kidney_gfr", "left_t12", "right_t12", "report_file_name")
DONOR_PLAN_FIELDS = (
    "final_kidney_selection", "final_surgical_approach", "vascular_complexity", "anesthesia_risk",
    "estimated_time_minutes", "anticipated_difficulties", "post_op_considerations", "team_assignment",
    "general_notes", "donor_bmi", "donor_age_category", "smoking_history", "hypertension_history",
    "diabetes_history",
)
VITAL_SIGN_FIELDS = ("blood_pressure", "heart_rate", "temperature", "oxygen_saturation", "weight")
# assessment date + five vital signs
ASSESSMENT_FIELD_COUNT = 6
CHECKLIST_WEIGHT = 0.7
ASSESSMENT_WEIGHT = 0.3


@dataclass
class PhaseProgress:
    progress: int
    status: PhaseStatus
    abnormal_findings: Optional[int] = None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent(done: int, total: int, empty: int = 100) -> int:
    if total == 0:
        return empty
    value = round_half_up(done / total * 100)
    # 100 is reserved for a fully done list
    if value == 100 and done < total:
        return 99
    return value


def status_for(progress: int) -> PhaseStatus:
    if progress >= 100:
        return PhaseStatus.COMPLETED
    if progress > 0:
        return PhaseStatus.IN_PROGRESS
    return PhaseStatus.AVAILABLE


def _result(progress: int, findings: Optional[int] = None) -> PhaseProgress:
    progress = max(0, min(100, progress))
    return PhaseProgress(progress=progress, status=status_for(progress), abnormal_findings=findings)


def _filled(value) -> bool:
    return value is not None and str(value).strip() != ""


def _fill_ratio(section, fields) -> float:
    if section.is_completed:
        return 100.0
    return sum(1 for name in fields if _filled(getattr(section, name))) / len(fields) * 100


def is_test_applicable(item: MedicalTestItem, patient: Patient) -> bool:
    rule = item.conditional
    if rule is None:
        return True
    gender_ok = rule.gender is None or patient.gender == rule.gender
    age_ok = (rule.min_age is None or patient.age >= rule.min_age) and (
        rule.max_age is None or patient.age <= rule.max_age
    )
    if rule.type == "gender":
        return gender_ok
    if rule.type == "age":
        return age_ok
    return gender_ok and age_ok


def screening_progress(payload: ScreeningPayload, patient: Patient) -> PhaseProgress:
    applicable = [t for t in payload.tests if is_test_applicable(t, patient)]
    done = sum(1 for t in applicable if t.is_completed or t.is_exempt)
    findings = sum(1 for t in applicable if t.is_abnormal and not t.is_exempt)
    return _result(percent(done, len(applicable)), findings)


def donor_imaging_progress(payload: DonorImagingPayload, patient: Patient) -> PhaseProgress:
    ct, dtpa, plan = payload.ct_angiogram, payload.dtpa_renogram, payload.surgical_plan
    if ct.is_completed and dtpa.is_completed and plan.is_completed:
        progress = 100
    else:
        sections = (_fill_ratio(ct, CT_FIELDS), _fill_ratio(dtpa, DTPA_FIELDS), _fill_ratio(plan, DONOR_PLAN_FIELDS))
        progress = round_half_up(sum(sections) / len(sections))
    findings = 0
    if plan.calculated_risk in ("High", "Medium"):
        findings += 1
    if dtpa.obstruction_present:
        findings += 1
    return _result(progress, findings)


def recipient_imaging_progress(payload: RecipientImagingPayload, patient: Patient) -> PhaseProgress:
    done = sum(1 for t in payload.imaging_tests if t.is_completed)
    done += 1 if payload.surgical_plan.is_completed else 0
    findings = sum(1 for t in payload.imaging_tests if t.status == "Requires Review")
    return _result(percent(done, len(payload.imaging_tests) + 1), findings)


def is_consultation_applicable(consultation, patient: Patient) -> bool:
    return consultation.is_applicable or ("gyno" in consultation.id and patient.gender == "Female")


def consultations_progress(payload: ConsultationsPayload, patient: Patient) -> PhaseProgress:
    applicable = [c for c in payload.consultations if is_consultation_applicable(c, patient)]
    done = sum(1 for c in applicable if c.status in ("Cleared", "Not Required"))
    result = _result(percent(done, len(applicable)))
    # Any consultation under way takes the phase out of Available even before one clears
    if result.status == PhaseStatus.AVAILABLE and any(c.status != "Pending" for c in payload.consultations):
        result.status = PhaseStatus.IN_PROGRESS
    return result


def legal_clearance_progress(payload: LegalClearancePayload, patient: Patient) -> PhaseProgress:
    has_file = bool(payload.file_name.strip())
    if payload.status == "Cleared" and has_file:
        return _result(100)
    if payload.status == "In Progress" or has_file:
        return _result(50)
    return _result(0)


def tissue_typing_progress(payload: TissueTypingPayload, patient: Patient) -> PhaseProgress:
    slots = []
    for typing in (payload.donor_hla, payload.recipient_hla):
        for values in typing.model_dump().values():
            slots.extend(values)
    crossmatch = payload.crossmatch
    others = (
        crossmatch.cdc != "Pending",
        crossmatch.flow != "Pending",
        crossmatch.dsa != "Pending",
        bool(crossmatch.dsa_interpretation.strip()),
        payload.final_assessment.final_result != "Pending",
    )
    total = len(slots) + len(others)
    done = sum(1 for s in slots if _filled(s)) + sum(others)

    findings = 0
    if crossmatch.cdc == "Positive":
        findings += 1
    if crossmatch.flow == "Positive":
        findings += 1
    if crossmatch.dsa == "Present":
        findings += 1
    if payload.hla_compatibility.risk_level in ("High", "Moderate"):
        findings += 1
    return _result(percent(done, total), findings)


def final_review_progress(payload: FinalReviewPayload, patient: Patient) -> PhaseProgress:
    items = payload.clearance_items
    done = sum(1 for i in items if i.status in ("Cleared", "Not Required"))
    return _result(percent(done, len(items)))


def team_review_progress(payload: TeamReviewPayload, patient: Patient) -> PhaseProgress:
    items = payload.review_items
    done = sum(1 for i in items if i.status == "Completed")
    return _result(percent(done, len(items)))


def surgery_preparation_progress(payload: SurgeryPreparationPayload, patient: Patient) -> PhaseProgress:
    prep = payload.donor_preparation if patient.type == PatientType.DONOR else payload.recipient_preparation
    items = prep.items
    checklist = 100.0 if not items else sum(1 for i in items if i.status == "completed") / len(items) * 100

    assessment = prep.assessment
    filled = (1 if _filled(assessment.assessment_date) else 0) + sum(
        1 for name in VITAL_SIGN_FIELDS if _filled(getattr(assessment.vital_signs, name))
    )
    assessment_pct = filled / ASSESSMENT_FIELD_COUNT * 100
    return _result(round_half_up(checklist * CHECKLIST_WEIGHT + assessment_pct * ASSESSMENT_WEIGHT))


_CALCULATORS: Dict[str, Callable] = {
    "screening": screening_progress,
    "donor_imaging": donor_imaging_progress,
    "recipient_imaging": recipient_imaging_progress,
    "consultations": consultations_progress,
    "legal_clearance": legal_clearance_progress,
    "tissue_typing": tissue_typing_progress,
    "final_review": final_review_progress,
    "team_review": team_review_progress,
    "surgery_preparation": surgery_preparation_progress,
}


def calculate(phase: EvaluationPhase, patient: Patient) -> PhaseProgress:
    try:
        calculator = _CALCULATORS[phase.payload.kind]
    except KeyError:
        raise InvalidPhaseError(f"No progress rule for payload kind {phase.payload.kind!r}")
    return calculator(phase.payload, patient)


def derive_payload(phase: EvaluationPhase) -> None:
    """Recompute the derived fields of ``phase.payload`` from its entered values."""
    payload = phase.payload
    if isinstance(payload, ScreeningPayload):
        for test in payload.tests:
            if test.is_exempt:
                test.value, test.is_abnormal, test.is_completed = "", False, False
            else:
                test.is_abnormal = normal_range.is_abnormal(test, test.value)
                test.is_completed = bool(test.value.strip())
    elif isinstance(payload, DonorImagingPayload):
        payload.dtpa_renogram.total_gfr = data_entry.total_gfr(payload.dtpa_renogram)
        payload.surgical_plan.calculated_risk = data_entry.donor_risk(payload.surgical_plan)
    elif isinstance(payload, TissueTypingPayload):
        payload.hla_compatibility = calculate_compatibility(payload.donor_hla, payload.recipient_hla)


def refresh_phase(phase: EvaluationPhase, patient: Patient) -> PhaseProgress:
    """
    Derive, score and restamp ``phase`` in place.

    A session-locked phase gets its progress and findings updated but keeps
    its status.
    """
    derive_payload(phase)
    result = calculate(phase, patient)
    phase.progress = result.progress
    phase.abnormal_findings = result.abnormal_findings
    if not phase.locked:
        phase.status = result.status
    return result


def unlock_next(phases: List[EvaluationPhase], phase_id: int) -> None:
    """If phase ``phase_id`` is Completed, lift a Locked successor to Available."""
    current = next((p for p in phases if p.id == phase_id), None)
    if current is None or current.status != PhaseStatus.COMPLETED:
        return
    following = next((p for p in phases if p.id == phase_id + 1), None)
    if following is not None and following.status == PhaseStatus.LOCKED and not following.locked:
        following.status = PhaseStatus.AVAILABLE


def refresh_workflow(phases: List[EvaluationPhase], phase_id: int, patient: Patient) -> EvaluationPhase:
    phase = next((p for p in phases if p.id == phase_id), None)
    if phase is None:
        raise InvalidPhaseError(f"Unknown phase id: {phase_id}")
    refresh_phase(phase, patient)
    unlock_next(phases, phase_id)
    return phase
