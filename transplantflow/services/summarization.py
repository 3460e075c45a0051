"""
Free-text clinical summaries via Azure OpenAI.

Best effort only: every public coroutine returns text, and a missing
configuration or a provider failure comes back as an error string for the
caller to show inline.
"""
import asyncio
import logging
from typing import List, Optional

from openai import AzureOpenAI, OpenAIError

from transplantflow.config import Settings, get_settings
from transplantflow.schemas.patient import Patient, PatientType
from transplantflow.schemas.workflow import Consultation, EvaluationPhase, MedicalTestItem, PhaseStatus

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Error: Azure OpenAI is not configured."
SUMMARY_FAILED = "An error occurred while generating the summary. Please try again."
RISK_FAILED = "An error occurred while generating the risk assessment. Please try again."

SYSTEM_PROMPT = "You are a clinical transplant coordinator writing for a multidisciplinary kidney transplant team."


def _join(values: List[str]) -> str:
    return ", ".join(values) if values else "None"


def format_patient_data(patient: Patient, workflow: List[EvaluationPhase],
                        medical_tests: Optional[List[MedicalTestItem]] = None) -> str:
    completed = [p.name for p in workflow if p.status == PhaseStatus.COMPLETED]
    current = next((p for p in workflow if p.status == PhaseStatus.IN_PROGRESS), None)
    lines = [
        f"- Patient Name: {patient.name}",
        f"- Age: {patient.age}",
        f"- Gender: {patient.gender}",
        f"- Blood Type: {patient.blood_type}",
        f"- Role: {patient.type.value}",
        f"- Medical History: {_join(patient.medical_history)}",
        f"- Current Medications: {_join(patient.medications)}",
        f"- Allergies: {_join(patient.allergies)}",
        "- Evaluation Progress:",
        f"  - Completed Phases: {_join(completed)}",
        f"  - Current Phase: {f'{current.name} ({current.progress}% complete)' if current else 'Not started'}",
    ]

    if medical_tests:
        abnormal = [t for t in medical_tests if t.is_abnormal and t.is_completed]
        exempted = [t for t in medical_tests if t.is_exempt]
        if abnormal:
            lines.append("- Key Findings (Abnormal Lab Results):")
            for t in abnormal:
                result = t.value
                if t.conditional_input and t.value == t.conditional_input.on_value and t.conditional_value:
                    result += f": {t.conditional_value}"
                elif t.unit:
                    result += f" {t.unit}"
                lines.append(f"  - {t.name}: {result} (Normal Range: {t.normal_range or 'N/A'})")
        if exempted:
            lines.append("- Exempted Tests (Not Required):")
            for t in exempted:
                lines.append(f"  - {t.name}: Reason - {t.exemption_reason}")
    return "\n".join(lines)


def format_consultations(consultations: List[Consultation]) -> str:
    applicable = [c for c in consultations if c.is_applicable]
    cleared = [c.department for c in applicable if c.status == "Cleared"]
    pending = [c.department for c in applicable if c.status in ("Pending", "In Progress")]
    not_required = [
        f"{c.department} (Justification: {c.justification or 'N/A'})"
        for c in applicable if c.status == "Not Required"
    ]
    return "\n".join([
        f"- Cleared Departments: {_join(cleared)}",
        f"- Pending/In Progress Departments: {_join(pending)}",
        f"- Not Required Departments: {_join(not_required)}",
    ])


class SummaryService:
    def __init__(self, settings: Optional[Settings] = None, client: Optional[AzureOpenAI] = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self.settings.azure_openai_endpoint and self.settings.azure_openai_key)

    def _get_client(self) -> AzureOpenAI:
        if self._client is None:
            self._client = AzureOpenAI(
                azure_endpoint=self.settings.azure_openai_endpoint,
                api_key=self.settings.azure_openai_key,
                api_version=self.settings.azure_openai_api_version,
            )
        return self._client

    def _complete(self, prompt: str) -> str:
        response = self._get_client().chat.completions.create(
            model=self.settings.azure_openai_deployment,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.2,
        )
        return (response.choices[0].message.content or "").strip()

    async def _generate(self, prompt: str, what: str, failure: str) -> str:
        if not self.configured:
            return NOT_CONFIGURED
        try:
            return await asyncio.to_thread(self._complete, prompt)
        except OpenAIError as e:
            logger.error("Generating %s failed: %s", what, e)
            return failure

    async def evaluation_summary(self, patient: Patient, workflow: List[EvaluationPhase],
                                 medical_tests: Optional[List[MedicalTestItem]] = None) -> str:
        prompt = f"""Generate a concise, professional medical summary report for a living kidney transplant {patient.type.value}.
The report should be structured for a clinical audience, highlighting key information and evaluation progress.

The summary MUST include these sections:
- **Abnormal Lab Results**: every result flagged abnormal, with test name, value and normal range.
- **Exempted Tests**: every test marked Not Required, with the reason for exemption.

If there are no abnormal results or no exempted tests, state "None noted" under that heading.
Do not add greetings or closing remarks, just the report.

Patient Data:
{format_patient_data(patient, workflow, medical_tests)}"""
        return await self._generate(prompt, "evaluation summary", SUMMARY_FAILED)

    async def risk_assessment(self, patient: Patient) -> str:
        procedure = "donation" if patient.type == PatientType.DONOR else "transplant"
        prompt = f"""Based on the following patient profile, provide a brief, qualitative risk assessment for a living kidney {procedure}.
Highlight potential areas of concern for clinicians to investigate further.
Conclude with an overall risk categorization: "Overall Risk: Low", "Overall Risk: Medium", or "Overall Risk: High".
Do not add greetings or closing remarks, just the assessment.

Patient Profile:
- Age: {patient.age}
- Blood Type: {patient.blood_type}
- Role: {patient.type.value}
- Key Medical History: {_join(patient.medical_history)}"""
        return await self._generate(prompt, "risk assessment", RISK_FAILED)

    async def clearance_summary(self, patient: Patient, consultations: List[Consultation]) -> str:
        prompt = f"""Generate a concise, professional summary of the departmental clearance status for a living kidney transplant {patient.type.value}.
Write one brief paragraph on the overall progress. Do not use bullet points or add greetings.

Patient Role: {patient.type.value}

Current Clearance Status:
{format_consultations(consultations)}"""
        return await self._generate(prompt, "clearance summary", SUMMARY_FAILED)

    async def pair_summary(self, donor: Patient, recipient: Patient,
                           donor_workflow: List[EvaluationPhase], recipient_workflow: List[EvaluationPhase]) -> str:
        prompt = f"""Generate a concise, professional summary of the living kidney transplant pair below for a team meeting.

Structure it with these sections:
1. **Overall Status:** one sentence on the pair's current stage.
2. **Donor Highlights:** key findings and milestones, including the phase in progress.
3. **Recipient Highlights:** key findings and milestones, including the phase in progress.
4. **Key Concerns & Blockers:** abnormal results, incompatible findings, delays or pending critical clearances. If none, state "No significant concerns noted at this time."
5. **Synchronization Status:** whether the two evaluations are progressing in parallel.
6. **Next Steps:** the immediate actions for the pair.

Do not add greetings or closing remarks, just the report.

**Donor Data:**
{format_patient_data(donor, donor_workflow)}

**Recipient Data:**
{format_patient_data(recipient, recipient_workflow)}"""
        return await self._generate(prompt, "pair summary", SUMMARY_FAILED)
