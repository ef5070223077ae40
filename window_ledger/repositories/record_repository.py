from typing import Any
from sqlalchemy.orm import Session
from window_ledger.models.record import Record


class RecordRepository:
    """Repository for Record model operations with multi-tenant support"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_collection(self, collection: str, tenant_id: str) -> list[Record]:
        """Get all records of a collection for a tenant"""
        return (
            self.db.query(Record)
            .filter(Record.collection == collection, Record.tenant_id == tenant_id)
            .order_by(Record.created_at, Record.id)
            .all()
        )

    def get_by_id_and_tenant(self, collection: str, record_id: str, tenant_id: str) -> Record | None:
        """
        Get record ensuring it belongs to the tenant (multi-tenant safety).

        Returns None if the record doesn't exist, lives in another collection,
        or belongs to another tenant.
        """
        return (
            self.db.query(Record)
            .filter(
                Record.id == record_id,
                Record.collection == collection,
                Record.tenant_id == tenant_id,
            )
            .first()
        )

    def create(self, record: Record) -> Record:
        """Create new record"""
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def update(self, record: Record, partial: dict[str, Any]) -> Record:
        """Merge partial payload into an existing record (last write wins)"""
        # Reassign so the JSON column is flagged dirty
        record.data = {**(record.data or {}), **partial}
        self.db.commit()
        self.db.refresh(record)
        return record

    def delete(self, record: Record) -> None:
        """Delete record"""
        self.db.delete(record)
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
