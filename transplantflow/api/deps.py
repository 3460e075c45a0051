"""Service container wired once per app and handed to endpoints via Depends."""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from transplantflow.config import Settings
from transplantflow.database import get_session_factory
from transplantflow.services.edit_session import SessionManager
from transplantflow.services.hla_extraction import HlaExtractionService
from transplantflow.services.pair_sync import PairSyncCoordinator
from transplantflow.services.record_store import InMemoryRecordStore, RecordStore, SqlRecordStore
from transplantflow.services.registry import PatientRegistry
from transplantflow.services.scheduler import DebounceScheduler
from transplantflow.services.summarization import SummaryService
from transplantflow.services.workflow_store import WorkflowStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: RecordStore
    registry: PatientRegistry
    workflows: WorkflowStore
    scheduler: DebounceScheduler
    coordinator: PairSyncCoordinator
    sessions: SessionManager
    summaries: SummaryService
    extraction: HlaExtractionService


def build_services(settings: Settings, store: Optional[RecordStore] = None) -> Services:
    if store is None:
        if settings.record_store_backend == "memory":
            store = InMemoryRecordStore()
        elif settings.record_store_backend == "sql":
            store = SqlRecordStore(get_session_factory())
        else:
            raise ValueError(f"Unknown record_store_backend: {settings.record_store_backend!r}")
    logger.info("Record store: %s", type(store).__name__)

    registry = PatientRegistry(store)
    workflows = WorkflowStore(store, registry)
    scheduler = DebounceScheduler()
    coordinator = PairSyncCoordinator(workflows, registry, scheduler, delay=settings.partner_sync_delay_seconds)
    sessions = SessionManager(workflows, coordinator, scheduler, delay=settings.local_commit_delay_seconds)
    return Services(
        settings=settings,
        store=store,
        registry=registry,
        workflows=workflows,
        scheduler=scheduler,
        coordinator=coordinator,
        sessions=sessions,
        summaries=SummaryService(settings),
        extraction=HlaExtractionService(settings),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
