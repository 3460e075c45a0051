"""Tests for patient registration and pairing."""
import asyncio

import pytest

from transplantflow.core.exceptions import PairingError, PairNotFoundError, PatientNotFoundError
from transplantflow.schemas.patient import PatientCreate, PatientType
from transplantflow.services.registry import PatientRegistry

from conftest import LatentStore


def new_patient(name, role=PatientType.DONOR, **kwargs) -> PatientCreate:
    return PatientCreate(name=name, age=40, gender="Male", blood_type="B+", type=role, **kwargs)


async def test_sequential_ids(registry):
    first = await registry.register_patient(new_patient("Ravi Kumar"))
    second = await registry.register_patient(new_patient("Anita Kumar", PatientType.RECIPIENT))
    assert (first.id, second.id) == ("p001", "p002")
    assert [p.id for p in await registry.list_patients()] == ["p001", "p002"]


async def test_concurrent_registrations_keep_every_patient():
    registry = PatientRegistry(LatentStore(read_delay=0.005, write_delays=(0.005,)))
    patients = await asyncio.gather(
        registry.register_patient(new_patient("Ravi Kumar")),
        registry.register_patient(new_patient("Suresh Rao")),
        registry.register_patient(new_patient("Anita Kumar", PatientType.RECIPIENT)),
    )
    assert sorted(p.id for p in patients) == ["p001", "p002", "p003"]
    assert sorted(p.id for p in await registry.list_patients()) == ["p001", "p002", "p003"]


async def test_pair_created_during_compatibility_update_is_kept(pair, store):
    registry = PatientRegistry(LatentStore(initial=store.snapshot(), read_delay=0.005, write_delays=(0.005,)))
    donor = await registry.register_patient(new_patient("Suresh Rao"))
    recipient = await registry.register_patient(new_patient("Meera Rao", PatientType.RECIPIENT))

    created, _ = await asyncio.gather(
        registry.create_pair(donor.id, recipient.id),
        registry.update_pair_compatibility(pair.id, "Compatible"),
    )

    pairs = {p.id: p for p in await registry.list_pairs()}
    assert set(pairs) == {pair.id, created.id}
    assert pairs[pair.id].compatibility_status == "Compatible"


async def test_pairing_rules(pair, registry):
    with pytest.raises(PairingError):
        await registry.create_pair(pair.recipient_id, pair.donor_id)
    other = await registry.register_patient(new_patient("Meera Shah", PatientType.RECIPIENT))
    with pytest.raises(PairingError):
        await registry.create_pair(pair.donor_id, other.id)
    with pytest.raises(PatientNotFoundError):
        await registry.create_pair("p999", other.id)


async def test_partner_lookup(pair, registry):
    assert (await registry.get_partner(pair.donor_id)).id == pair.recipient_id
    assert (await registry.get_partner(pair.recipient_id)).id == pair.donor_id
    solo = await registry.register_patient(new_patient("Solo Donor"))
    assert await registry.get_partner(solo.id) is None


async def test_compatibility_update_for_unknown_pair(registry):
    with pytest.raises(PairNotFoundError):
        await registry.update_pair_compatibility("pair999", "Compatible")
