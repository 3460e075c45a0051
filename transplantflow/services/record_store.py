"""
Record store boundary: an async key-value store holding JSON values.

The engine keeps three logical collections in it: the patient list, the pair
list, and one phase list per patient (see ``workflow_key``).
"""
import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transplantflow.core.exceptions import StoreUnavailableError
from transplantflow.models import Record

logger = logging.getLogger(__name__)

PATIENTS_KEY = "transplantflow_patients"
PAIRS_KEY = "transplantflow_pairs"
WORKFLOW_KEY_PREFIX = "transplantflow_workflows"


def workflow_key(patient_id: str) -> str:
    return f"{WORKFLOW_KEY_PREFIX}:{patient_id}"


class RecordStore(ABC):
    """get/set of JSON-serialisable values; every call may suspend."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        ...


class InMemoryRecordStore(RecordStore):
    """
    Process-local store for demos and tests.

    Values go through a JSON round trip on the way in, so callers never share
    mutable state with the store and non-serialisable values fail early.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        self.write_count = 0
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StoreUnavailableError(f"Value for {key} is not JSON serialisable: {e}") from e
        self.write_count += 1

    def snapshot(self) -> Dict[str, Any]:
        return {key: json.loads(raw) for key, raw in self._data.items()}


class SqlRecordStore(RecordStore):
    """Records kept in the ``records`` table (JSONB on PostgreSQL)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[Any]:
        try:
            async with self._session_factory() as session:
                record = await session.get(Record, key)
                return None if record is None else copy.deepcopy(record.value)
        except SQLAlchemyError as e:
            logger.error("Record store read failed for %s: %s", key, e)
            raise StoreUnavailableError(f"Could not read {key}") from e

    async def set(self, key: str, value: Any) -> None:
        try:
            async with self._session_factory() as session:
                record = await session.get(Record, key)
                if record is None:
                    session.add(Record(key=key, value=value))
                else:
                    record.value = value
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Record store write failed for %s: %s", key, e)
            raise StoreUnavailableError(f"Could not write {key}") from e
