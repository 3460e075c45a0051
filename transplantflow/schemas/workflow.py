"""
Pydantic models for the evaluation workflow.

A workflow is an ordered list of eight EvaluationPhase records. Each phase
carries exactly one typed payload, tagged by ``kind``; which kind belongs to
which phase id (and, for phases 1-2, which role) is fixed by the templates.
"""
import enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from transplantflow.schemas.patient import Gender

LOCI = ("A", "B", "C", "DR", "DQ", "DP")


class PhaseStatus(str, enum.Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    AVAILABLE = "available"
    LOCKED = "locked"
    REVIEW_NEEDED = "review_needed"


# --- Phase 1: screening & labs ---

class ApplicabilityRule(BaseModel):
    """Restricts a checklist item to parties of a given age range and/or gender."""

    type: Literal["age", "gender", "both"]
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    gender: Optional[Gender] = None


class ConditionalInput(BaseModel):
    on_value: str
    placeholder: str


class MedicalTestItem(BaseModel):
    id: str
    name: str
    category: str
    value: str = ""
    conditional_value: str = ""
    unit: str = ""
    normal_range: str = ""
    is_abnormal: bool = False
    is_completed: bool = False
    input_type: Literal["text", "number", "dropdown"] = "text"
    dropdown_options: List[str] = Field(default_factory=list)
    placeholder: str = ""
    conditional_input: Optional[ConditionalInput] = None
    conditional: Optional[ApplicabilityRule] = None
    is_exempt: bool = False
    exemption_reason: str = ""
    exemption_date: str = ""
    exempted_by: str = ""


class ScreeningPayload(BaseModel):
    kind: Literal["screening"] = "screening"
    tests: List[MedicalTestItem] = Field(default_factory=list)


# --- Phase 2 (donor): imaging & surgical assessment ---

class CTAngiogram(BaseModel):
    is_completed: bool = False
    date_performed: str = ""
    left_kidney_length: str = ""
    left_kidney_width: str = ""
    left_kidney_volume: str = ""
    left_main_artery_diameter: str = ""
    right_kidney_length: str = ""
    right_kidney_width: str = ""
    right_kidney_volume: str = ""
    right_main_artery_diameter: str = ""
    left_renal_arteries: str = ""
    left_renal_veins: str = ""
    right_renal_arteries: str = ""
    right_renal_veins: str = ""
    accessory_vessels: str = "None"
    cortical_thickness: str = ""
    parenchymal_quality: str = "Normal"
    calcification_atherosclerosis: str = "None"
    anatomical_variations: str = "None"
    clinical_interpretation: str = ""
    recommended_kidney: Literal["Left", "Right", "Either", ""] = ""
    recommended_approach: Literal["Open", "Laparoscopic", "Robotic", ""] = ""
    report_file_name: str = ""
    report_uploaded: bool = False


class DTPARenogram(BaseModel):
    is_completed: bool = False
    date_performed: str = ""
    left_kidney_gfr: str = ""
    right_kidney_gfr: str = ""
    total_gfr: str = ""
    functional_asymmetry: bool = False
    left_t12: str = ""
    right_t12: str = ""
    obstruction_present: bool = False
    notes: str = ""
    report_file_name: str = ""
    report_uploaded: bool = False


class DonorSurgicalPlan(BaseModel):
    is_completed: bool = False
    final_kidney_selection: Literal["Left", "Right", "Undecided", ""] = ""
    final_surgical_approach: Literal["Open", "Laparoscopic", "Robotic", ""] = ""
    vascular_complexity: Literal["Simple", "Moderate", "Complex", ""] = ""
    anesthesia_risk: Literal["Low Risk", "Moderate Risk", "High Risk", ""] = ""
    estimated_time_minutes: str = ""
    anticipated_difficulties: str = ""
    post_op_considerations: str = ""
    team_assignment: str = ""
    general_notes: str = ""
    # Risk stratification
    donor_bmi: str = ""
    donor_age_category: Literal["Young (18-39)", "Middle-aged (40-59)", "Elderly (60+)", ""] = ""
    smoking_history: Literal["Yes", "No", ""] = ""
    hypertension_history: Literal["Yes", "No", ""] = ""
    diabetes_history: Literal["Yes", "No", ""] = ""
    calculated_risk: Literal["Low", "Medium", "High", "Not Calculated"] = "Not Calculated"


class DonorImagingPayload(BaseModel):
    kind: Literal["donor_imaging"] = "donor_imaging"
    ct_angiogram: CTAngiogram = Field(default_factory=CTAngiogram)
    dtpa_renogram: DTPARenogram = Field(default_factory=DTPARenogram)
    surgical_plan: DonorSurgicalPlan = Field(default_factory=DonorSurgicalPlan)


# --- Phase 2 (recipient): cardiac & vascular assessment ---

class ImagingTestResult(BaseModel):
    name: str
    status: Literal["Pending", "Completed", "Requires Review"] = "Pending"
    report_summary: str = ""
    is_completed: bool = False


class RecipientSurgicalPlan(BaseModel):
    notes: str = ""
    is_completed: bool = False


class RecipientImagingPayload(BaseModel):
    kind: Literal["recipient_imaging"] = "recipient_imaging"
    imaging_tests: List[ImagingTestResult] = Field(default_factory=list)
    surgical_plan: RecipientSurgicalPlan = Field(default_factory=RecipientSurgicalPlan)


# --- Phase 3: consultations ---

ConsultationStatus = Literal["Pending", "In Progress", "Cleared", "Not Required"]


class Consultation(BaseModel):
    id: str
    department: str
    is_applicable: bool = True
    status: ConsultationStatus = "Pending"
    clearance_date: str = ""
    doctor_name: str = ""
    notes: str = ""
    report_file_name: str = ""
    justification: str = ""


class ConsultationsPayload(BaseModel):
    kind: Literal["consultations"] = "consultations"
    consultations: List[Consultation] = Field(default_factory=list)


# --- Phase 4: legal clearance ---

class LegalClearancePayload(BaseModel):
    kind: Literal["legal_clearance"] = "legal_clearance"
    status: Literal["Pending", "In Progress", "Cleared"] = "Pending"
    clearance_date: str = ""
    officer_name: str = ""
    notes: str = ""
    file_name: str = ""


# --- Phase 5: HLA typing & crossmatch ---

def _empty_alleles() -> List[str]:
    return ["", ""]


class HLATyping(BaseModel):
    A: List[str] = Field(default_factory=_empty_alleles)
    B: List[str] = Field(default_factory=_empty_alleles)
    C: List[str] = Field(default_factory=_empty_alleles)
    DR: List[str] = Field(default_factory=_empty_alleles)
    DQ: List[str] = Field(default_factory=_empty_alleles)
    DP: List[str] = Field(default_factory=_empty_alleles)

    def alleles(self, locus: str) -> List[str]:
        return getattr(self, locus)


class CrossmatchResults(BaseModel):
    cdc: Literal["Pending", "Negative", "Positive"] = "Pending"
    flow: Literal["Pending", "Negative", "Positive"] = "Pending"
    dsa: Literal["Pending", "Absent", "Present"] = "Pending"
    dsa_interpretation: str = ""


class FinalAssessment(BaseModel):
    final_result: Literal["Pending", "Compatible", "Incompatible", "Requires further testing"] = "Pending"
    date: str = ""
    lab: str = ""
    notes: str = ""


class Phase5Document(BaseModel):
    file_name: str
    uploaded_by: str = ""
    upload_date: str = ""


class LocusMismatches(BaseModel):
    A: int = 0
    B: int = 0
    C: int = 0
    DR: int = 0
    DQ: int = 0
    DP: int = 0


class HLAMismatchResult(BaseModel):
    total: int = 0
    class1: int = 0  # A, B, C
    class2: int = 0  # DR, DQ, DP
    details: LocusMismatches = Field(default_factory=LocusMismatches)


RiskLevel = Literal["Identical", "Low", "Moderate", "High", "Pending"]


class HLACompatibility(BaseModel):
    mismatch_result: HLAMismatchResult = Field(default_factory=HLAMismatchResult)
    match_ratio: str = "0/12"
    risk_level: RiskLevel = "Pending"


class TissueTypingPayload(BaseModel):
    kind: Literal["tissue_typing"] = "tissue_typing"
    donor_hla: HLATyping = Field(default_factory=HLATyping)
    recipient_hla: HLATyping = Field(default_factory=HLATyping)
    crossmatch: CrossmatchResults = Field(default_factory=CrossmatchResults)
    hla_compatibility: HLACompatibility = Field(default_factory=HLACompatibility)
    final_assessment: FinalAssessment = Field(default_factory=FinalAssessment)
    documents: List[Phase5Document] = Field(default_factory=list)


# --- Phase 6: final review & readiness ---

class ClearanceItem(BaseModel):
    id: str
    title: str
    description: str = ""
    status: Literal["Pending", "Cleared", "Not Required"] = "Pending"
    notes: str = ""
    cleared_by: str = ""
    clearance_date: str = ""


class FinalReviewPayload(BaseModel):
    kind: Literal["final_review"] = "final_review"
    clearance_items: List[ClearanceItem] = Field(default_factory=list)


# --- Phase 7: transplant team review ---

class ReviewItem(BaseModel):
    id: str
    title: str
    description: str = ""
    status: Literal["Pending", "Completed"] = "Pending"
    completed_by: str = ""
    completion_date: str = ""


class TeamReviewPayload(BaseModel):
    kind: Literal["team_review"] = "team_review"
    review_items: List[ReviewItem] = Field(default_factory=list)
    final_notes: str = ""
    surgery_date: str = ""


# --- Phase 8: surgery preparation & admission ---

class SurgeryPreparationItem(BaseModel):
    id: str
    title: str
    description: str = ""
    category: Literal["medical", "administrative", "surgical", "anesthesia"]
    priority: Literal["critical", "high", "medium", "low"]
    status: Literal["pending", "in_progress", "completed", "delayed"] = "pending"
    assigned_to: str = ""
    deadline: str = ""
    dependencies: List[str] = Field(default_factory=list)
    completed_by: str = ""
    completed_at: str = ""
    notes: str = ""


class SurgicalTeam(BaseModel):
    primary_surgeon: str = ""
    assisting_surgeon: str = ""
    anesthesiologist: str = ""
    nurses: List[str] = Field(default_factory=list)
    coordinator: str = ""


class EstimatedDuration(BaseModel):
    # minutes
    donor_procedure: str = ""
    organ_transport: str = ""
    recipient_procedure: str = ""


class OperativeSchedule(BaseModel):
    donor_surgery_time: str = ""
    recipient_surgery_time: str = ""
    or_room: str = ""
    surgical_team: SurgicalTeam = Field(default_factory=SurgicalTeam)
    estimated_duration: EstimatedDuration = Field(default_factory=EstimatedDuration)
    contingency_plans: List[str] = Field(default_factory=list)


class VitalSigns(BaseModel):
    blood_pressure: str = ""
    heart_rate: str = ""
    temperature: str = ""
    oxygen_saturation: str = ""
    weight: str = ""


class Coagulation(BaseModel):
    pt: str = ""
    ptt: str = ""
    inr: str = ""


class LaboratoryResults(BaseModel):
    hemoglobin: str = ""
    creatinine: str = ""
    potassium: str = ""
    glucose: str = ""
    coagulation: Coagulation = Field(default_factory=Coagulation)


class PreoperativeClearances(BaseModel):
    cardiology: bool = False
    pulmonology: bool = False
    anesthesia: bool = False
    surgery: bool = False


class PreoperativeAssessment(BaseModel):
    patient_id: str = ""
    assessment_date: str = ""
    vital_signs: VitalSigns = Field(default_factory=VitalSigns)
    laboratory_results: LaboratoryResults = Field(default_factory=LaboratoryResults)
    clearances: PreoperativeClearances = Field(default_factory=PreoperativeClearances)
    risk_assessment: Literal["low", "moderate", "high", "pending"] = "pending"
    special_precautions: List[str] = Field(default_factory=list)


class PartyPreparation(BaseModel):
    items: List[SurgeryPreparationItem] = Field(default_factory=list)
    assessment: PreoperativeAssessment = Field(default_factory=PreoperativeAssessment)


class SurgeryPreparationPayload(BaseModel):
    kind: Literal["surgery_preparation"] = "surgery_preparation"
    operative_schedule: OperativeSchedule = Field(default_factory=OperativeSchedule)
    donor_preparation: PartyPreparation = Field(default_factory=PartyPreparation)
    recipient_preparation: PartyPreparation = Field(default_factory=PartyPreparation)


PhasePayload = Annotated[
    Union[
        ScreeningPayload,
        DonorImagingPayload,
        RecipientImagingPayload,
        ConsultationsPayload,
        LegalClearancePayload,
        TissueTypingPayload,
        FinalReviewPayload,
        TeamReviewPayload,
        SurgeryPreparationPayload,
    ],
    Field(discriminator="kind"),
]


class EvaluationPhase(BaseModel):
    id: int = Field(ge=1, le=8)
    name: str
    description: str
    status: PhaseStatus = PhaseStatus.AVAILABLE
    progress: int = Field(default=0, ge=0, le=100)
    abnormal_findings: Optional[int] = None
    # Set by the party's own data-entry session; exempt from auto-transition and the unlock pass
    locked: bool = False
    payload: PhasePayload


class PhaseUpdate(BaseModel):
    """Request body for a phase payload edit."""

    payload: PhasePayload
