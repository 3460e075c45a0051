"""
Abnormal-flag evaluation for screening test values.

A normal range is one of: ``<N``, ``>N``, ``low-high``, the blood-type
allow-list ``A/B/AB/O [+/-]``, or a literal expected text. ``evaluate`` returns
True (abnormal), False (normal) or None when no judgement can be made.
"""
import re
from typing import Optional

from transplantflow.schemas.patient import BLOOD_TYPES
from transplantflow.schemas.workflow import MedicalTestItem

BLOOD_TYPE_RANGE = "a/b/ab/o [+/-]"
ABNORMAL_CHOICES = frozenset({"positive", "reactive"})

_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_number(text: str) -> Optional[float]:
    """Leading numeric prefix of ``text`` ("7.2 mg/dL" -> 7.2), or None."""
    if text is None:
        return None
    match = _NUMBER_PREFIX.match(text)
    if not match:
        return None
    return float(match.group(0))


def _is_numeric_range(normal_range: str) -> bool:
    return normal_range.startswith(("<", ">")) or _split_interval(normal_range) is not None


def _split_interval(normal_range: str):
    parts = normal_range.split("-")
    if len(parts) != 2:
        return None
    low, high = parse_number(parts[0]), parse_number(parts[1])
    if low is None or high is None:
        return None
    return low, high


def evaluate(value: str, normal_range: str) -> Optional[bool]:
    value = (value or "").strip()
    normal_range = (normal_range or "").strip()
    if not value or not normal_range or "report" in normal_range.lower():
        return None

    number = parse_number(value)
    if number is None:
        if _is_numeric_range(normal_range):
            return None
        lowered = value.lower()
        if lowered == normal_range.lower():
            return False
        if normal_range.lower() == BLOOD_TYPE_RANGE:
            return lowered.upper() not in BLOOD_TYPES
        return True

    if normal_range.startswith("<"):
        limit = parse_number(normal_range[1:])
        return None if limit is None else number >= limit
    if normal_range.startswith(">"):
        limit = parse_number(normal_range[1:])
        return None if limit is None else number <= limit
    interval = _split_interval(normal_range)
    if interval is None:
        return None
    low, high = interval
    return number < low or number > high


def is_abnormal(item: MedicalTestItem, value: str) -> bool:
    """Abnormal flag for a value entered against ``item``."""
    if not value or not value.strip():
        return False
    if item.input_type == "dropdown" and value.strip().lower() in ABNORMAL_CHOICES:
        return True
    return evaluate(value, item.normal_range) is True
