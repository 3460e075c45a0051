"""Tests for prompt formatting and the best-effort summary service."""
from types import SimpleNamespace

from openai import OpenAIError

from transplantflow.config import Settings
from transplantflow.schemas.workflow import Consultation, ConditionalInput, MedicalTestItem, PhaseStatus
from transplantflow.services import summarization
from transplantflow.services.summarization import SummaryService, format_consultations, format_patient_data
from transplantflow.services.templates import instantiate


class FakeOpenAI:
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.prompts.append(kwargs["messages"][-1]["content"])
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def settings() -> Settings:
    return Settings(_env_file=None, azure_openai_endpoint="", azure_openai_key="")


def test_format_patient_data_lists_progress(donor):
    workflow = instantiate(donor.type)
    workflow[0].status = PhaseStatus.COMPLETED
    workflow[1].status = PhaseStatus.IN_PROGRESS
    workflow[1].progress = 40

    text = format_patient_data(donor, workflow)
    assert "- Patient Name: Ravi Kumar" in text
    assert "- Medical History: None" in text
    assert f"  - Completed Phases: {workflow[0].name}" in text
    assert f"  - Current Phase: {workflow[1].name} (40% complete)" in text


def test_format_patient_data_findings_and_exemptions(donor):
    tests = [
        MedicalTestItem(id="hb", name="Hemoglobin", category="Blood", value="9.1", unit="g/dL",
                        normal_range="12-16", is_abnormal=True, is_completed=True),
        MedicalTestItem(id="tb", name="Tuberculosis", category="Infection", value="Positive",
                        conditional_input=ConditionalInput(on_value="Positive", placeholder="Details"),
                        conditional_value="Latent, on treatment", is_abnormal=True, is_completed=True),
        MedicalTestItem(id="psa", name="PSA", category="Cancer", is_exempt=True, exemption_reason="Under 50"),
    ]
    text = format_patient_data(donor, instantiate(donor.type), tests)
    assert "  - Hemoglobin: 9.1 g/dL (Normal Range: 12-16)" in text
    assert "  - Tuberculosis: Positive: Latent, on treatment (Normal Range: N/A)" in text
    assert "  - PSA: Reason - Under 50" in text


def test_format_consultations_groups_by_status():
    text = format_consultations([
        Consultation(id="c1", department="Cardiology", status="Cleared"),
        Consultation(id="c2", department="Psychiatry", status="In Progress"),
        Consultation(id="c3", department="Dental", status="Not Required", justification="Edentulous"),
        Consultation(id="c4", department="Gynecology", is_applicable=False),
    ])
    assert "- Cleared Departments: Cardiology" in text
    assert "- Pending/In Progress Departments: Psychiatry" in text
    assert "- Not Required Departments: Dental (Justification: Edentulous)" in text
    assert "Gynecology" not in text


async def test_not_configured_returns_error_text(donor):
    service = SummaryService(settings())
    assert await service.risk_assessment(donor) == summarization.NOT_CONFIGURED


async def test_summary_uses_completion_text(donor):
    client = FakeOpenAI(reply="  Overall Risk: Low  ")
    service = SummaryService(settings(), client=client)
    assert await service.risk_assessment(donor) == "Overall Risk: Low"
    assert "living kidney donation" in client.prompts[0]


async def test_provider_failure_returns_error_text(donor, recipient):
    client = FakeOpenAI(error=OpenAIError("quota exceeded"))
    service = SummaryService(settings(), client=client)
    workflow = instantiate(donor.type)

    assert await service.evaluation_summary(donor, workflow) == summarization.SUMMARY_FAILED
    assert await service.risk_assessment(recipient) == summarization.RISK_FAILED
    assert await service.pair_summary(donor, recipient, workflow, instantiate(recipient.type)) == summarization.SUMMARY_FAILED
