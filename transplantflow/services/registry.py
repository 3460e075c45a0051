"""Patient and pair registry over the record store."""
import asyncio
import logging
from datetime import date
from typing import List, Optional

from transplantflow.core.exceptions import PairingError, PairNotFoundError, PatientNotFoundError
from transplantflow.schemas.patient import Pair, Patient, PatientCreate, PatientType
from transplantflow.services.record_store import PAIRS_KEY, PATIENTS_KEY, RecordStore

logger = logging.getLogger(__name__)

PAIR_STATUS_BY_RESULT = {"Compatible": "Compatible", "Incompatible": "Incompatible"}


def _next_id(prefix: str, existing: List[str], width: int = 3) -> str:
    numbers = []
    for item_id in existing:
        suffix = item_id[len(prefix):]
        if item_id.startswith(prefix) and suffix.isdigit():
            numbers.append(int(suffix))
    return f"{prefix}{(max(numbers) + 1) if numbers else 1:0{width}d}"


class PatientRegistry:
    """
    Patients and pairs over the record store.

    Each list is rewritten whole, so every read-modify-write of either list
    runs under one in-process lock.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._lock = asyncio.Lock()

    async def list_patients(self) -> List[Patient]:
        raw = await self.store.get(PATIENTS_KEY) or []
        return [Patient.model_validate(p) for p in raw]

    async def get_patient(self, patient_id: str) -> Patient:
        for patient in await self.list_patients():
            if patient.id == patient_id:
                return patient
        raise PatientNotFoundError(patient_id)

    async def register_patient(self, data: PatientCreate, registered_on: Optional[date] = None) -> Patient:
        async with self._lock:
            patients = await self.list_patients()
            patient = Patient(
                id=_next_id("p", [p.id for p in patients]),
                registration_date=(registered_on or date.today()).isoformat(),
                **data.model_dump(),
            )
            patients.append(patient)
            await self.store.set(PATIENTS_KEY, [p.model_dump(mode="json") for p in patients])
        logger.info("Registered %s %s (%s)", patient.type.value.lower(), patient.id, patient.name)
        return patient

    async def list_pairs(self) -> List[Pair]:
        raw = await self.store.get(PAIRS_KEY) or []
        return [Pair.model_validate(p) for p in raw]

    async def get_pair(self, pair_id: str) -> Pair:
        for pair in await self.list_pairs():
            if pair.id == pair_id:
                return pair
        raise PairNotFoundError(pair_id)

    async def find_pair_for_patient(self, patient_id: str) -> Optional[Pair]:
        for pair in await self.list_pairs():
            if patient_id in (pair.donor_id, pair.recipient_id):
                return pair
        return None

    async def get_partner(self, patient_id: str) -> Optional[Patient]:
        pair = await self.find_pair_for_patient(patient_id)
        if pair is None:
            return None
        return await self.get_patient(pair.partner_of(patient_id))

    async def create_pair(self, donor_id: str, recipient_id: str, created_on: Optional[date] = None) -> Pair:
        donor = await self.get_patient(donor_id)
        recipient = await self.get_patient(recipient_id)
        if donor.type != PatientType.DONOR:
            raise PairingError(f"{donor_id} is not registered as a donor")
        if recipient.type != PatientType.RECIPIENT:
            raise PairingError(f"{recipient_id} is not registered as a recipient")

        async with self._lock:
            pairs = await self.list_pairs()
            for pair in pairs:
                for patient_id in (donor_id, recipient_id):
                    if patient_id in (pair.donor_id, pair.recipient_id):
                        raise PairingError(f"{patient_id} already belongs to {pair.id}")

            pair = Pair(
                id=_next_id("pair", [p.id for p in pairs]),
                donor_id=donor_id,
                recipient_id=recipient_id,
                creation_date=(created_on or date.today()).isoformat(),
            )
            pairs.append(pair)
            await self.store.set(PAIRS_KEY, [p.model_dump(mode="json") for p in pairs])
        logger.info("Created %s: donor %s, recipient %s", pair.id, donor_id, recipient_id)
        return pair

    async def update_pair_compatibility(self, pair_id: str, final_result: str) -> Pair:
        """Record a tissue-typing final result on the pair; anything undecided maps to Pending."""
        async with self._lock:
            pairs = await self.list_pairs()
            for pair in pairs:
                if pair.id == pair_id:
                    status = PAIR_STATUS_BY_RESULT.get(final_result, "Pending")
                    if pair.compatibility_status != status:
                        pair.compatibility_status = status
                        await self.store.set(PAIRS_KEY, [p.model_dump(mode="json") for p in pairs])
                        logger.info("%s compatibility is now %s", pair_id, status)
                    return pair
        raise PairNotFoundError(pair_id)
