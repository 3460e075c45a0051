import enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

BLOOD_TYPES = ["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]

Gender = Literal["Male", "Female", "Other"]
CompatibilityStatus = Literal["Compatible", "Incompatible", "Pending"]


class PatientType(str, enum.Enum):
    DONOR = "Donor"
    RECIPIENT = "Recipient"


class PatientBase(BaseModel):
    name: str
    age: int = Field(ge=0, le=130)
    gender: Gender
    blood_type: str
    type: PatientType
    phone: str = ""
    email: str = ""
    address: str = ""
    medical_history: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    weight_kg: Optional[float] = None
    height_cm: Optional[float] = None
    bmi: Optional[float] = None
    # Donor only
    relationship_to_recipient: Optional[str] = None
    motivation_for_donation: Optional[str] = None
    # Recipient only
    primary_kidney_disease: Optional[str] = None
    dialysis_mode: Optional[Literal["HD", "PD", "Preemptive"]] = None

    @field_validator("blood_type")
    @classmethod
    def check_blood_type(cls, v: str) -> str:
        v = v.strip().upper()
        if v not in BLOOD_TYPES:
            raise ValueError(f"blood_type must be one of {', '.join(BLOOD_TYPES)}")
        return v


class PatientCreate(PatientBase):
    pass


class Patient(PatientBase):
    id: str
    registration_date: str

    @property
    def is_donor(self) -> bool:
        return self.type == PatientType.DONOR


class PairCreate(BaseModel):
    donor_id: str
    recipient_id: str


class Pair(BaseModel):
    id: str
    donor_id: str
    recipient_id: str
    compatibility_status: CompatibilityStatus = "Pending"
    creation_date: str

    def partner_of(self, patient_id: str) -> Optional[str]:
        if patient_id == self.donor_id:
            return self.recipient_id
        if patient_id == self.recipient_id:
            return self.donor_id
        return None
