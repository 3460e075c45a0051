"""
HLA compatibility scoring.

Counts donor antigens the recipient lacks at each of the six loci and maps
the total onto a risk tier. Typing that is not yet complete on both sides
scores as Pending, though the partial match ratio is still reported.
"""
import re
from typing import List

from transplantflow.schemas.workflow import (
    LOCI,
    HLACompatibility,
    HLAMismatchResult,
    HLATyping,
    LocusMismatches,
)

CLASS_I_LOCI = ("A", "B", "C")
MAX_MISMATCHES = 12

_LONG_LOCUS_PREFIX = re.compile(r"^(DR|DQ|DP)B1[*\s]+")


def normalize_allele(allele: str) -> str:
    """``"HLA-DRB1*04:05"`` or ``"DRB1 04:05"`` -> ``"DR04:05"``; ``"a*02:01"`` -> ``"A02:01"``."""
    if not allele:
        return ""
    code = re.sub(r"^HLA-", "", allele.strip().upper())
    code = _LONG_LOCUS_PREFIX.sub(r"\1", code)
    return code.replace("*", "").strip()


def _normalized(alleles: List[str]) -> List[str]:
    return [a for a in (normalize_allele(x) for x in (alleles or [])[:2]) if a]


def risk_tier(total_mismatches: int) -> str:
    if total_mismatches == 0:
        return "Identical"
    if total_mismatches <= 2:
        return "Low"
    if total_mismatches <= 4:
        return "Moderate"
    return "High"


def calculate_compatibility(donor: HLATyping, recipient: HLATyping) -> HLACompatibility:
    details = LocusMismatches()
    class1 = class2 = 0
    complete = True

    for locus in LOCI:
        donor_alleles = _normalized(donor.alleles(locus))
        recipient_alleles = _normalized(recipient.alleles(locus))
        if len(donor_alleles) < 2 or len(recipient_alleles) < 2:
            complete = False

        mismatches = sum(1 for allele in donor_alleles if allele not in recipient_alleles)
        setattr(details, locus, mismatches)
        if locus in CLASS_I_LOCI:
            class1 += mismatches
        else:
            class2 += mismatches

    total = class1 + class2
    return HLACompatibility(
        mismatch_result=HLAMismatchResult(total=total, class1=class1, class2=class2, details=details),
        match_ratio=f"{MAX_MISMATCHES - total}/{MAX_MISMATCHES}",
        risk_level=risk_tier(total) if complete else "Pending",
    )
