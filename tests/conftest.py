"""Pytest configuration and fixtures."""
import asyncio
import itertools
import os

import pytest

from transplantflow.schemas.patient import Patient, PatientCreate, PatientType
from transplantflow.services.edit_session import SessionManager
from transplantflow.services.pair_sync import PairSyncCoordinator
from transplantflow.services.record_store import InMemoryRecordStore
from transplantflow.services.registry import PatientRegistry
from transplantflow.services.scheduler import DebounceScheduler
from transplantflow.services.workflow_store import WorkflowStore

LOCAL_DELAY = 0.02
SYNC_DELAY = 0.05


class LatentStore(InMemoryRecordStore):
    """In-memory store whose reads and writes suspend, like a remote database."""

    def __init__(self, initial=None, read_delay=0.0, write_delays=(0.0,)):
        super().__init__(initial)
        self.read_delay = read_delay
        self._write_delays = itertools.cycle(write_delays)

    async def get(self, key):
        await asyncio.sleep(self.read_delay)
        return await super().get(key)

    async def set(self, key, value):
        await asyncio.sleep(next(self._write_delays))
        await super().set(key, value)


@pytest.fixture(scope="session")
def require_db():
    """Skip tests that need a real database when DATABASE_URL is not set."""
    if not os.getenv("DATABASE_URL"):
        pytest.skip("DATABASE_URL not set; skipping integration test")


def make_patient(**overrides) -> Patient:
    data = {
        "id": "p001",
        "registration_date": "2024-05-01",
        "name": "Ravi Kumar",
        "age": 45,
        "gender": "Male",
        "blood_type": "O+",
        "type": PatientType.DONOR,
    }
    data.update(overrides)
    return Patient(**data)


@pytest.fixture
def donor() -> Patient:
    return make_patient()


@pytest.fixture
def recipient() -> Patient:
    return make_patient(id="p002", name="Anita Kumar", age=38, gender="Female", blood_type="A+",
                        type=PatientType.RECIPIENT)


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def registry(store):
    return PatientRegistry(store)


@pytest.fixture
def workflows(store, registry):
    return WorkflowStore(store, registry)


@pytest.fixture
def scheduler():
    return DebounceScheduler()


@pytest.fixture
def coordinator(workflows, registry, scheduler):
    return PairSyncCoordinator(workflows, registry, scheduler, delay=SYNC_DELAY)


@pytest.fixture
def sessions(workflows, coordinator, scheduler):
    return SessionManager(workflows, coordinator, scheduler, delay=LOCAL_DELAY)


@pytest.fixture
async def pair(registry):
    donor = await registry.register_patient(PatientCreate(
        name="Ravi Kumar", age=45, gender="Male", blood_type="O+", type=PatientType.DONOR,
        relationship_to_recipient="Spouse",
    ))
    recipient = await registry.register_patient(PatientCreate(
        name="Anita Kumar", age=38, gender="Female", blood_type="A+", type=PatientType.RECIPIENT,
        dialysis_mode="HD",
    ))
    return await registry.create_pair(donor.id, recipient.id)


@pytest.fixture
def patient_factory():
    return make_patient
