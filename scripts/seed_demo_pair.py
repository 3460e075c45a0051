#!/usr/bin/env python3
"""
Script to register a demo donor/recipient pair and create both workflows.

Useful for trying the API against a fresh database:
- Registers one donor and one recipient
- Pairs them
- Creates both eight-phase workflows from the templates

Usage: python scripts/seed_demo_pair.py
       python scripts/seed_demo_pair.py --dry-run  # Show what would be created
"""
import sys
import os
import asyncio
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transplantflow.database import dispose_engine, get_session_factory, init_db
from transplantflow.schemas.patient import PatientCreate, PatientType
from transplantflow.services.record_store import SqlRecordStore
from transplantflow.services.registry import PatientRegistry
from transplantflow.services.workflow_store import WorkflowStore

DEMO_DONOR = PatientCreate(
    name="Ravi Kumar",
    age=45,
    gender="Male",
    blood_type="O+",
    type=PatientType.DONOR,
    relationship_to_recipient="Spouse",
    motivation_for_donation="Wants to help his wife come off dialysis",
)
DEMO_RECIPIENT = PatientCreate(
    name="Anita Kumar",
    age=38,
    gender="Female",
    blood_type="A+",
    type=PatientType.RECIPIENT,
    primary_kidney_disease="IgA nephropathy",
    dialysis_mode="HD",
    medical_history=["Hypertension"],
)


async def seed_demo_pair(dry_run: bool = False):
    if dry_run:
        print("🔍 Dry run: would register")
        for patient in (DEMO_DONOR, DEMO_RECIPIENT):
            print(f"  - {patient.type.value}: {patient.name}, {patient.age}, {patient.blood_type}")
        return

    await init_db()
    try:
        registry = PatientRegistry(SqlRecordStore(get_session_factory()))
        workflows = WorkflowStore(registry.store, registry)

        donor = await registry.register_patient(DEMO_DONOR)
        recipient = await registry.register_patient(DEMO_RECIPIENT)
        pair = await registry.create_pair(donor.id, recipient.id)
        for patient in (donor, recipient):
            phases = await workflows.get_workflow(patient.id)
            print(f"  ✓ {patient.id} ({patient.type.value}): {len(phases)} phases")
        print(f"✅ Created {pair.id}: donor {donor.id}, recipient {recipient.id}")
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(seed_demo_pair(dry_run="--dry-run" in sys.argv))
