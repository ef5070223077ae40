from datetime import date as date_type, datetime
from pydantic import BaseModel, Field
from typing import Optional

from window_ledger.models.order import OrderStatus


class WindowSnapshot(BaseModel):
    """A window earmarked at order creation, with its balance at that time"""

    window_id: str
    machine_id: str = ""
    window_number: str = ""
    machine_name: str = ""
    start_balance: int = Field(..., ge=0)


class WindowResult(BaseModel):
    """Per-window outcome reported on completion"""

    window_id: str
    consumed: int = Field(..., ge=0)
    end_balance: int = Field(..., ge=0)


class ExecutionEntry(BaseModel):
    """One staff member's work segment on an order. Name is a write-time snapshot."""

    staff_id: str
    staff_name: str
    amount: float
    start_time: str
    end_time: Optional[str] = None


class OrderRecord(BaseModel):
    id: str
    staff_id: str
    amount: float
    date: str
    status: OrderStatus = OrderStatus.PENDING
    fee_percent: float = 0
    unit_price: float = 0
    loss: int = 0
    completed_amount: Optional[float] = None
    remaining_amount: Optional[float] = None
    window_snapshots: Optional[list[WindowSnapshot]] = None
    window_results: Optional[list[WindowResult]] = None
    total_consumed: Optional[int] = None
    execution_history: list[ExecutionEntry] = Field(default_factory=list)

    def delivered_amount(self) -> float:
        """Sum of amounts across execution history"""
        return sum(entry.amount for entry in self.execution_history)


class OrderCreate(BaseModel):
    """Schema for dispatching a new order"""

    staff_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0, description="Order units; 1 unit = 10 000 coins")
    date: date_type
    fee_percent: Optional[float] = Field(None, ge=0, le=100)
    unit_price: Optional[float] = Field(None, ge=0)
    window_ids: Optional[list[str]] = Field(
        None, description="Windows to snapshot at their current balances"
    )
    window_snapshots: Optional[list[WindowSnapshot]] = None


class OrderComplete(BaseModel):
    window_results: list[WindowResult] = Field(..., min_length=1)


class OrderPause(BaseModel):
    completed_amount: float = Field(..., gt=0)


class OrderResume(BaseModel):
    staff_id: Optional[str] = Field(None, description="Hand the order over to this staff member")


class CompletionReport(BaseModel):
    """Completed order plus the window write-backs that did not land"""

    order: OrderRecord
    failed_window_ids: list[str] = Field(default_factory=list)


class PauseResponse(BaseModel):
    success: bool


class OrderListResponse(BaseModel):
    orders: list[OrderRecord]
    total: int
