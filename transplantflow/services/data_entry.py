"""
Pure data-entry helpers: screening results and exemptions, consultation
sign-off, and the derived fields of the donor surgical plan.
"""
from datetime import date
from typing import Optional

from transplantflow.core.exceptions import DataEntryError
from transplantflow.schemas.workflow import (
    Consultation,
    DonorSurgicalPlan,
    DTPARenogram,
    MedicalTestItem,
)
from transplantflow.services import normal_range

RISK_INPUT_FIELDS = ("donor_bmi", "donor_age_category", "smoking_history", "hypertension_history", "diabetes_history")


def record_test_result(item: MedicalTestItem, value: str) -> MedicalTestItem:
    return item.model_copy(
        update={
            "value": value,
            "is_abnormal": normal_range.is_abnormal(item, value),
            "is_completed": bool(value.strip()),
        }
    )


def exempt_test(item: MedicalTestItem, reason: str, exempted_by: str = "System User",
                on: Optional[date] = None) -> MedicalTestItem:
    if not reason or not reason.strip():
        raise DataEntryError(f"An exemption reason is required for test '{item.id}'")
    return item.model_copy(
        update={
            "is_exempt": True,
            "is_completed": False,
            "value": "",
            "is_abnormal": False,
            "exemption_reason": reason.strip(),
            "exemption_date": (on or date.today()).isoformat(),
            "exempted_by": exempted_by,
        }
    )


def remove_exemption(item: MedicalTestItem) -> MedicalTestItem:
    return item.model_copy(
        update={"is_exempt": False, "exemption_reason": "", "exemption_date": "", "exempted_by": ""}
    )


def set_consultation_status(consultation: Consultation, status: str, justification: str = "") -> Consultation:
    if status == "Not Required" and not (justification or consultation.justification).strip():
        raise DataEntryError(
            f"Marking {consultation.department} as Not Required needs a justification"
        )
    update = {"status": status}
    if justification:
        update["justification"] = justification.strip()
    return consultation.model_validate({**consultation.model_dump(), **update})


def check_consultation(consultation: Consultation) -> None:
    """Raise DataEntryError if ``consultation`` is Not Required without a justification."""
    if consultation.status == "Not Required" and not consultation.justification.strip():
        raise DataEntryError(
            f"Marking {consultation.department} as Not Required needs a justification"
        )


def total_gfr(renogram: DTPARenogram) -> str:
    """Left plus right split GFR to two decimals; empty unless both sides parse."""
    left = normal_range.parse_number(renogram.left_kidney_gfr)
    right = normal_range.parse_number(renogram.right_kidney_gfr)
    if left is None or right is None:
        return ""
    return f"{left + right:.2f}"


def donor_risk(plan: DonorSurgicalPlan) -> str:
    if not all(getattr(plan, name) for name in RISK_INPUT_FIELDS):
        return "Not Calculated"

    score = 0
    bmi = normal_range.parse_number(plan.donor_bmi)
    if bmi is not None:
        if bmi > 35:
            score += 2
        elif bmi > 30:
            score += 1
    if plan.donor_age_category == "Elderly (60+)":
        score += 2
    elif plan.donor_age_category == "Middle-aged (40-59)":
        score += 1
    if plan.smoking_history == "Yes":
        score += 2
    if plan.hypertension_history == "Yes":
        score += 1
    if plan.diabetes_history == "Yes":
        score += 2

    if score >= 5:
        return "High"
    if score >= 2:
        return "Medium"
    return "Low"
