import uuid
from typing import Any
from sqlalchemy import String, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from window_ledger.models.base import Base, TimestampMixin


def generate_id() -> str:
    return str(uuid.uuid4())


class Record(Base, TimestampMixin):
    """
    Generic tenant-scoped document in the resource store.

    Every entity (machines, windows, orders, purchases, requests, recharges,
    staff, settings) is one row here, keyed by collection and tenant. The
    payload is an opaque JSON object; validation happens in the services.
    """

    __tablename__ = "records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,  # Critical for multi-tenant queries
    )
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("ix_records_tenant_collection", "tenant_id", "collection"),)

    def __repr__(self) -> str:
        return f"<Record(id={self.id}, collection='{self.collection}', tenant_id='{self.tenant_id}')>"
