from pydantic import BaseModel, Field
from typing import Optional

from window_ledger.models.window_request import RequestStatus, RequestType


class WindowRequest(BaseModel):
    id: str
    staff_id: str
    staff_name: str
    type: RequestType
    window_id: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    created_at: str
    processed_at: Optional[str] = None
    processed_by: Optional[str] = None
    note: Optional[str] = None


class WindowRequestCreate(BaseModel):
    type: RequestType
    window_id: Optional[str] = None
    note: Optional[str] = Field(None, max_length=500)


class WindowRequestProcess(BaseModel):
    approved: bool


class RequestDecision(BaseModel):
    """Stamped request plus the follow-up steps that did not land"""

    request: WindowRequest
    failed_steps: list[str] = Field(default_factory=list)
