from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class CloudMachine(BaseModel):
    """A grouping of windows, created and deleted as a unit"""

    id: str
    phone: str
    platform: str


class CloudWindow(BaseModel):
    """A rentable session slot holding coins and at most one assignee"""

    id: str
    machine_id: str
    window_number: str
    gold_balance: int
    user_id: Optional[str] = None


class MachineCreate(BaseModel):
    phone: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1, max_length=64)


class MachineUpdate(BaseModel):
    phone: Optional[str] = Field(None, min_length=1, max_length=64)
    platform: Optional[str] = Field(None, min_length=1, max_length=64)


class WindowSpec(BaseModel):
    """One window to create under a machine"""

    window_number: str = Field(..., min_length=1, max_length=32)
    gold_balance: int = Field(0, ge=0)


class WindowCreate(WindowSpec):
    machine_id: str


class WindowBatchCreate(BaseModel):
    windows: list[WindowSpec] = Field(..., min_length=1, max_length=100)


class WindowBatchResponse(BaseModel):
    machine_id: str
    created_ids: list[str]
    failed: list[WindowSpec]


class MachinePurchase(BaseModel):
    """Batch purchase: a machine, its windows, and the purchase ledger entry"""

    phone: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1, max_length=64)
    windows: list[WindowSpec] = Field(..., min_length=1, max_length=100)
    cost: Optional[float] = Field(None, ge=0, description="Total price paid; no purchase entry if omitted")
    date: Optional[str] = Field(None, description="ISO date; defaults to today")


class PurchaseReport(BaseModel):
    """Which sub-steps of a batch purchase succeeded. Nothing is rolled back."""

    machine_id: Optional[str] = None
    window_ids: list[str] = Field(default_factory=list)
    purchase_id: Optional[str] = None
    failed_steps: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_steps


class CascadeDeleteReport(BaseModel):
    machine_id: str
    deleted_window_ids: list[str]
    failed_window_ids: list[str]


class WindowAssign(BaseModel):
    user_id: Optional[str] = Field(None, description="Staff id, or null to free the window")


class WindowRechargeCreate(BaseModel):
    amount: int = Field(..., description="Signed coin delta")


class WindowBalanceSet(BaseModel):
    gold_balance: int = Field(..., ge=0)


class WindowRecharge(BaseModel):
    """Audit entry written by every successful recharge"""

    id: str
    window_id: str
    amount: int
    balance_before: int
    balance_after: int
    created_at: datetime
    created_by: str


class PurchaseRecord(BaseModel):
    """Append-only purchase ledger entry; amount in coins, cost in currency"""

    id: str
    date: str
    amount: int
    cost: float
    note: Optional[str] = None
