"""Tests for debounced local commits and partner propagation of shared phases."""
import asyncio

import pytest

from transplantflow.schemas.patient import PatientCreate, PatientType
from transplantflow.schemas.workflow import (
    ConsultationsPayload,
    HLATyping,
    LegalClearancePayload,
    PhaseStatus,
    TissueTypingPayload,
)
from transplantflow.services.record_store import InMemoryRecordStore, workflow_key

from conftest import LOCAL_DELAY, SYNC_DELAY

SETTLE = LOCAL_DELAY + SYNC_DELAY + 0.1


class CountingStore(InMemoryRecordStore):
    def __init__(self):
        super().__init__()
        self.writes = []
        self.write_delay = 0.0

    async def set(self, key, value):
        await asyncio.sleep(self.write_delay)
        await super().set(key, value)
        self.writes.append((key, value))


@pytest.fixture
def store():
    return CountingStore()


def writes_for(store, patient_id):
    return [value for key, value in store.writes if key == workflow_key(patient_id)]


async def test_two_rapid_edits_give_one_write_with_second_value(pair, workflows, sessions, store):
    await workflows.get_workflow(pair.donor_id)
    store.writes.clear()

    session = sessions.open(pair.donor_id)
    await session.update_phase(4, LegalClearancePayload(status="In Progress", notes="first"))
    await session.update_phase(4, LegalClearancePayload(status="In Progress", notes="second"))
    await session.flush()

    donor_writes = writes_for(store, pair.donor_id)
    assert len(donor_writes) == 1
    assert donor_writes[0][3]["payload"]["notes"] == "second"


async def test_update_returns_recomputed_phase_before_commit(pair, sessions, store):
    session = sessions.open(pair.donor_id)
    phase = await session.update_phase(4, LegalClearancePayload(status="Cleared", file_name="affidavit.pdf"))
    assert phase.progress == 100
    assert phase.status == PhaseStatus.COMPLETED
    assert session.has_pending(4)
    assert writes_for(store, pair.donor_id)[-1][3]["progress"] == 0
    await session.flush()
    assert writes_for(store, pair.donor_id)[-1][3]["progress"] == 100


async def test_shared_phase_reaches_partner(pair, workflows, sessions, store):
    payload = LegalClearancePayload(status="Cleared", clearance_date="2024-06-01",
                                    officer_name="R. Iyer", file_name="affidavit.pdf")
    session = sessions.open(pair.donor_id)
    await session.update_phase(4, payload)
    await session.flush()

    donor_phase = await workflows.get_phase(pair.donor_id, 4)
    recipient_phase = await workflows.get_phase(pair.recipient_id, 4)
    assert recipient_phase.payload == donor_phase.payload
    assert recipient_phase.progress == 100
    assert recipient_phase.status == PhaseStatus.COMPLETED


async def test_partner_lock_is_respected(pair, workflows, sessions):
    await workflows.lock_phase(pair.recipient_id, 4)

    session = sessions.open(pair.donor_id)
    payload = LegalClearancePayload(status="Cleared", file_name="affidavit.pdf")
    await session.update_phase(4, payload)
    await session.flush()

    donor_phase = await workflows.get_phase(pair.donor_id, 4)
    recipient_phase = await workflows.get_phase(pair.recipient_id, 4)
    assert donor_phase.status == PhaseStatus.COMPLETED
    assert recipient_phase.payload == donor_phase.payload
    assert recipient_phase.progress == 100
    assert recipient_phase.status == PhaseStatus.LOCKED


async def test_partner_sync_replaces_only_that_phase(pair, workflows, sessions):
    recipient_consults = (await workflows.get_phase(pair.recipient_id, 3)).payload
    recipient_consults.consultations[0].status = "Cleared"
    await workflows.mutate(pair.recipient_id, 3, recipient_consults)

    session = sessions.open(pair.donor_id)
    await session.update_phase(4, LegalClearancePayload(status="In Progress"))
    await session.flush()

    phase3 = await workflows.get_phase(pair.recipient_id, 3)
    assert isinstance(phase3.payload, ConsultationsPayload)
    assert phase3.payload.consultations[0].status == "Cleared"
    assert (await workflows.get_phase(pair.recipient_id, 4)).payload.status == "In Progress"


async def test_unshared_phase_is_not_propagated(pair, workflows, sessions, store):
    await workflows.get_workflow(pair.recipient_id)
    store.writes.clear()

    session = sessions.open(pair.donor_id)
    consults = (await workflows.get_phase(pair.donor_id, 3)).payload
    consults.consultations[0].status = "Cleared"
    await session.update_phase(3, consults)
    await session.flush()

    assert writes_for(store, pair.recipient_id) == []


async def test_tissue_typing_compatibility_shared(pair, workflows, sessions):
    typing = dict(A=["A1", "A2"], B=["B7", "B8"], C=["C4", "C7"], DR=["DR15", "DR17"], DQ=["DQ6", "DQ2"], DP=["DP4", "DP1"])
    payload = TissueTypingPayload(
        donor_hla=HLATyping(**{**typing, "A": ["A3", "A2"]}),
        recipient_hla=HLATyping(**typing),
    )

    session = sessions.open(pair.recipient_id)
    await session.update_phase(5, payload)
    await session.flush()

    donor_phase = await workflows.get_phase(pair.donor_id, 5)
    assert donor_phase.payload.hla_compatibility.match_ratio == "11/12"
    assert donor_phase.payload.hla_compatibility.risk_level == "Low"


async def test_close_before_commit_cancels_everything(pair, workflows, sessions, store):
    await workflows.get_workflow(pair.donor_id)
    await workflows.get_workflow(pair.recipient_id)
    store.writes.clear()

    session = sessions.open(pair.donor_id)
    await session.update_phase(4, LegalClearancePayload(status="In Progress"))
    assert sessions.close(pair.donor_id) == 1
    await asyncio.sleep(SETTLE)

    assert store.writes == []


async def test_close_after_commit_cancels_partner_push(pair, workflows, sessions, store, scheduler):
    await workflows.get_workflow(pair.recipient_id)
    session = sessions.open(pair.donor_id)
    await session.update_phase(4, LegalClearancePayload(status="In Progress"))
    await scheduler.join(("commit", pair.donor_id))
    store.writes.clear()

    sessions.close(pair.donor_id)
    await asyncio.sleep(SYNC_DELAY + 0.1)
    assert writes_for(store, pair.recipient_id) == []
    assert (await workflows.get_phase(pair.recipient_id, 4)).payload.status == "Pending"


async def test_concurrent_edits_last_push_wins(pair, workflows, sessions):
    donor_session = sessions.open(pair.donor_id)
    recipient_session = sessions.open(pair.recipient_id)
    await donor_session.update_phase(4, LegalClearancePayload(status="In Progress", notes="donor"))
    await asyncio.sleep(LOCAL_DELAY / 2)
    await recipient_session.update_phase(4, LegalClearancePayload(status="In Progress", notes="recipient"))
    await donor_session.flush()
    await recipient_session.flush()

    # Each side's push overwrote the other's own edit: no merge is attempted
    donor_notes = (await workflows.get_phase(pair.donor_id, 4)).payload.notes
    recipient_notes = (await workflows.get_phase(pair.recipient_id, 4)).payload.notes
    assert donor_notes == "recipient"
    assert recipient_notes == "donor"


async def test_unpaired_patient_has_nothing_to_sync(registry, workflows, coordinator):
    solo = await registry.register_patient(PatientCreate(
        name="Solo Donor", age=30, gender="Male", blood_type="B+", type=PatientType.DONOR,
    ))
    assert await coordinator.propagate(solo.id, 4, LegalClearancePayload(status="In Progress")) is False


async def test_closed_session_rejects_edits(pair, sessions):
    from transplantflow.core.exceptions import DataEntryError

    session = sessions.open(pair.donor_id)
    sessions.close(pair.donor_id)
    with pytest.raises(DataEntryError):
        await session.update_phase(4, LegalClearancePayload(status="In Progress"))
    assert sessions.open(pair.donor_id) is not session


async def test_close_during_running_commit_skips_partner_push(pair, workflows, sessions, store, scheduler):
    await workflows.get_workflow(pair.donor_id)
    await workflows.get_workflow(pair.recipient_id)
    session = sessions.open(pair.donor_id)
    await session.update_phase(4, LegalClearancePayload(status="In Progress"))
    store.write_delay = 0.1

    # the commit has left the pending map and is now waiting on its write
    await asyncio.sleep(LOCAL_DELAY + 0.03)
    assert not session.has_pending(4)
    sessions.close(pair.donor_id)
    await scheduler.join(("commit", pair.donor_id))

    assert (await workflows.get_phase(pair.donor_id, 4)).payload.status == "In Progress"
    assert not scheduler.is_pending(("sync", pair.donor_id, 4))
    assert (await workflows.get_phase(pair.recipient_id, 4)).payload.status == "Pending"
