"""
Tenant-scoped keyed record store.

Every call takes the tenant id; there is no way to reach a record by id
alone. Failures are returned as ``StoreResult(success=False, error=...)``
rather than raised, so callers decide whether a failed step is fatal.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from window_ledger.models.collection import Collection
from window_ledger.models.record import Record
from window_ledger.repositories.record_repository import RecordRepository

logger = logging.getLogger(__name__)


@dataclass
class StoreResult:
    """Outcome of a store call"""

    success: bool
    data: Any = None
    id: str | None = None
    error: str | None = None


def _to_document(record: Record) -> dict[str, Any]:
    return {**(record.data or {}), "id": record.id}


class ResourceStore:
    """list/get/add/update/delete over the records table, one tenant at a time"""

    def __init__(self, db: Session):
        self.db = db
        self.record_repo = RecordRepository(db)

    def list(self, collection: Collection, tenant_id: str) -> StoreResult:
        try:
            records = self.record_repo.get_by_collection(collection.value, tenant_id)
        except SQLAlchemyError as e:
            return self._failure("list", collection, tenant_id, e)
        return StoreResult(success=True, data=[_to_document(r) for r in records])

    def get(self, collection: Collection, tenant_id: str, record_id: str) -> StoreResult:
        """Fetch one document; ``data`` is None when it does not exist"""
        try:
            record = self.record_repo.get_by_id_and_tenant(collection.value, record_id, tenant_id)
        except SQLAlchemyError as e:
            return self._failure("get", collection, tenant_id, e)
        if record is None:
            return StoreResult(success=True, data=None)
        return StoreResult(success=True, data=_to_document(record), id=record.id)

    def add(
        self,
        collection: Collection,
        tenant_id: str,
        data: dict[str, Any],
        record_id: str | None = None,
    ) -> StoreResult:
        payload = {k: v for k, v in data.items() if k not in ("id", "tenant_id")}
        record = Record(collection=collection.value, tenant_id=tenant_id, data=payload)
        if record_id is not None:
            record.id = record_id
        try:
            record = self.record_repo.create(record)
        except SQLAlchemyError as e:
            return self._failure("add", collection, tenant_id, e)
        return StoreResult(success=True, data=_to_document(record), id=record.id)

    def update(
        self, collection: Collection, tenant_id: str, record_id: str, partial: dict[str, Any]
    ) -> StoreResult:
        """Shallow-merge ``partial`` into the stored document. No version check."""
        payload = {k: v for k, v in partial.items() if k not in ("id", "tenant_id")}
        try:
            record = self.record_repo.get_by_id_and_tenant(collection.value, record_id, tenant_id)
            if record is None:
                return StoreResult(success=False, id=record_id, error="record not found")
            record = self.record_repo.update(record, payload)
        except SQLAlchemyError as e:
            return self._failure("update", collection, tenant_id, e)
        return StoreResult(success=True, data=_to_document(record), id=record.id)

    def delete(self, collection: Collection, tenant_id: str, record_id: str) -> StoreResult:
        try:
            record = self.record_repo.get_by_id_and_tenant(collection.value, record_id, tenant_id)
            if record is None:
                return StoreResult(success=False, id=record_id, error="record not found")
            self.record_repo.delete(record)
        except SQLAlchemyError as e:
            return self._failure("delete", collection, tenant_id, e)
        return StoreResult(success=True, id=record_id)

    def _failure(
        self, op: str, collection: Collection, tenant_id: str, error: SQLAlchemyError
    ) -> StoreResult:
        logger.error(
            "Store %s on %s failed for tenant %s: %s", op, collection.value, tenant_id, error
        )
        self.record_repo.rollback()
        return StoreResult(success=False, error=str(error))


@contextmanager
def open_store(session_factory: Callable[[], Session]) -> Iterator[ResourceStore]:
    """Yield a store bound to a fresh session, closed afterwards"""
    db = session_factory()
    try:
        yield ResourceStore(db)
    finally:
        db.close()
