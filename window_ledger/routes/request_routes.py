from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from window_ledger.dependencies import get_identity, get_store, require_admin
from window_ledger.models.collection import Collection
from window_ledger.models.identity import Identity
from window_ledger.models.window_request import RequestStatus
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.services.request_arbiter import RequestArbiter
from window_ledger.schemas.request_schemas import (
    RequestDecision,
    WindowRequest,
    WindowRequestCreate,
    WindowRequestProcess,
)

router = APIRouter()


def _staff_name(store: ResourceStore, identity: Identity) -> str:
    result = store.get(Collection.STAFF, identity.tenant_id, identity.user_id)
    if not result.success or result.data is None:
        return "unknown"
    return result.data.get("name") or "unknown"


@router.post("", response_model=WindowRequest, status_code=status.HTTP_201_CREATED)
def submit_request(
    request_data: WindowRequestCreate,
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    Ask to acquire (apply) or give back (release) a window.

    - Release requests must name a window
    - The caller's current name is stored with the request
    """
    return RequestArbiter(store, identity.tenant_id).submit(
        identity.user_id,
        _staff_name(store, identity),
        request_data.type,
        window_id=request_data.window_id,
        note=request_data.note,
    )


@router.get("", response_model=list[WindowRequest])
def list_requests(
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    List window requests, newest first.

    - Staff only see their own requests
    """
    staff_id = None if identity.is_admin() else identity.user_id
    return RequestArbiter(store, identity.tenant_id).list_requests(
        status=request_status, staff_id=staff_id
    )


@router.post("/{request_id}/process", response_model=RequestDecision)
def process_request(
    request_id: str,
    decision: WindowRequestProcess,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Approve or reject a window request.

    - Approved apply: window assigned to the requester
    - Approved release: window freed
    - A failed reassignment is listed in failed_steps; the decision stands
    - Requires ADMIN
    """
    return RequestArbiter(store, identity.tenant_id).process(
        request_id, decision.approved, identity.user_id
    )
