from datetime import datetime
from pydantic import BaseModel, ConfigDict
from typing import Any, Optional

from window_ledger.schemas.order_schemas import OrderRecord
from window_ledger.schemas.request_schemas import WindowRequest
from window_ledger.schemas.settings_schemas import TenantSettings
from window_ledger.schemas.window_schemas import CloudMachine, CloudWindow, PurchaseRecord


class SnapshotResponse(BaseModel):
    """Cached tenant view as of the last reload"""

    model_config = ConfigDict(from_attributes=True)

    tenant_id: str
    machines: list[CloudMachine]
    windows: list[CloudWindow]
    orders: list[OrderRecord]
    purchases: list[PurchaseRecord]
    requests: list[WindowRequest]
    staff: list[dict[str, Any]]
    settings: TenantSettings
    loaded_at: Optional[datetime] = None


class ReloadResponse(BaseModel):
    """Per-collection outcome of a forced reload; false keeps the cached copy"""

    collections: dict[str, bool]
    loaded_at: Optional[datetime] = None
