"""Unit tests for abnormal-flag evaluation across the normal-range encodings."""
import pytest

from transplantflow.schemas.workflow import MedicalTestItem
from transplantflow.services.normal_range import evaluate, is_abnormal, parse_number


@pytest.mark.parametrize(
    "text, expected",
    [("7.2", 7.2), ("7.2 mg/dL", 7.2), ("-3", -3.0), (".5", 0.5), ("abc", None), ("", None)],
)
def test_parse_number(text, expected):
    assert parse_number(text) == expected


@pytest.mark.parametrize(
    "value, normal_range, expected",
    [
        ("5.2", "<5.7", False),
        ("5.7", "<5.7", True),
        ("45", ">40", False),
        ("40", ">40", True),
        ("14.0", "13.5-17.5", False),
        ("13.5", "13.5-17.5", False),
        ("12.9", "13.5-17.5", True),
        ("0.2", "0.0-0.3", False),
        ("Clear lung fields", "Clear lung fields", False),
        ("clear lung fields ", "Clear lung fields", False),
        ("Patchy opacity", "Clear lung fields", True),
        ("AB-", "A/B/AB/O [+/-]", False),
        ("o+", "A/B/AB/O [+/-]", False),
        ("C+", "A/B/AB/O [+/-]", True),
    ],
)
def test_evaluate(value, normal_range, expected):
    assert evaluate(value, normal_range) is expected


@pytest.mark.parametrize(
    "value, normal_range",
    [
        ("", "13.5-17.5"),
        ("   ", "<5.7"),
        ("high", "13.5-17.5"),
        ("n/a", "<200"),
        ("5", ""),
        ("5", "See report"),
        ("5", "Clear lung fields"),
    ],
)
def test_unparseable_or_empty_gives_no_flag(value, normal_range):
    assert evaluate(value, normal_range) is None


def test_dropdown_positive_or_reactive_is_abnormal():
    item = MedicalTestItem(id="hiv", name="HIV 1 & 2", category="Blood", input_type="dropdown",
                           dropdown_options=["Non-Reactive", "Reactive"])
    assert is_abnormal(item, "Reactive") is True
    assert is_abnormal(item, "Non-Reactive") is False

    culture = MedicalTestItem(id="blood_cs", name="Blood C/S", category="Blood", input_type="dropdown",
                              dropdown_options=["No Growth", "Positive"])
    assert is_abnormal(culture, "Positive") is True
    assert is_abnormal(culture, "No Growth") is False


def test_numeric_item_flags():
    item = MedicalTestItem(id="hemoglobin", name="Hemoglobin (Hb)", category="Blood", input_type="number",
                           unit="g/dL", normal_range="13.5-17.5")
    assert is_abnormal(item, "11") is True
    assert is_abnormal(item, "15") is False
    assert is_abnormal(item, "pending") is False
    assert is_abnormal(item, "") is False
