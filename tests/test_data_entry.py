"""Unit tests for data-entry helpers: results, exemptions, consultations, donor risk."""
from datetime import date

import pytest

from transplantflow.core.exceptions import DataEntryError
from transplantflow.schemas.workflow import Consultation, DonorSurgicalPlan, DTPARenogram, MedicalTestItem
from transplantflow.services.data_entry import (
    donor_risk,
    exempt_test,
    record_test_result,
    remove_exemption,
    set_consultation_status,
    total_gfr,
)


@pytest.fixture
def creatinine():
    return MedicalTestItem(id="creatinine", name="Creatinine", category="Blood", input_type="number",
                           unit="mg/dL", normal_range="0.6-1.3")


def test_record_test_result_sets_flags(creatinine):
    high = record_test_result(creatinine, "2.4")
    assert high.value == "2.4"
    assert high.is_abnormal is True
    assert high.is_completed is True
    # input item untouched
    assert creatinine.value == ""

    cleared = record_test_result(high, "  ")
    assert cleared.is_completed is False
    assert cleared.is_abnormal is False


def test_exempt_and_restore(creatinine):
    entered = record_test_result(creatinine, "2.4")
    exempt = exempt_test(entered, "Not clinically indicated", exempted_by="Dr. Rao", on=date(2024, 5, 3))
    assert exempt.is_exempt is True
    assert exempt.value == ""
    assert exempt.is_abnormal is False
    assert exempt.is_completed is False
    assert exempt.exemption_date == "2024-05-03"
    assert exempt.exempted_by == "Dr. Rao"

    restored = remove_exemption(exempt)
    assert restored.is_exempt is False
    assert restored.exemption_reason == ""


def test_exemption_requires_reason(creatinine):
    with pytest.raises(DataEntryError):
        exempt_test(creatinine, "   ")


def test_not_required_needs_justification():
    ent = Consultation(id="donor_ent", department="ENT")
    with pytest.raises(DataEntryError):
        set_consultation_status(ent, "Not Required")

    updated = set_consultation_status(ent, "Not Required", justification="Reviewed in 2023")
    assert updated.status == "Not Required"
    assert updated.justification == "Reviewed in 2023"

    cleared = set_consultation_status(ent, "Cleared")
    assert cleared.status == "Cleared"


def test_total_gfr():
    assert total_gfr(DTPARenogram(left_kidney_gfr="48.5", right_kidney_gfr="51.25")) == "99.75"
    assert total_gfr(DTPARenogram(left_kidney_gfr="50", right_kidney_gfr="")) == ""


def _plan(**kwargs) -> DonorSurgicalPlan:
    data = dict(donor_bmi="24", donor_age_category="Young (18-39)", smoking_history="No",
                hypertension_history="No", diabetes_history="No")
    data.update(kwargs)
    return DonorSurgicalPlan(**data)


@pytest.mark.parametrize(
    "overrides, expected",
    [
        ({}, "Low"),
        ({"donor_bmi": "31"}, "Low"),
        ({"donor_bmi": "31", "hypertension_history": "Yes"}, "Medium"),
        ({"smoking_history": "Yes"}, "Medium"),
        ({"donor_bmi": "36", "donor_age_category": "Elderly (60+)", "hypertension_history": "Yes"}, "High"),
        ({"diabetes_history": "Yes", "smoking_history": "Yes", "hypertension_history": "Yes"}, "High"),
        ({"donor_bmi": ""}, "Not Calculated"),
        ({"diabetes_history": ""}, "Not Calculated"),
    ],
)
def test_donor_risk(overrides, expected):
    assert donor_risk(_plan(**overrides)) == expected
