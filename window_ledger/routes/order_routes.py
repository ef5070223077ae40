from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status

from window_ledger.core.exceptions import ForbiddenException
from window_ledger.dependencies import get_identity, get_store, require_admin
from window_ledger.models.identity import Identity
from window_ledger.models.order import OrderStatus
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.services.order_ledger import OrderLedger
from window_ledger.services.settings_service import SettingsService
from window_ledger.schemas.order_schemas import (
    CompletionReport,
    OrderComplete,
    OrderCreate,
    OrderListResponse,
    OrderPause,
    OrderRecord,
    OrderResume,
    PauseResponse,
)

router = APIRouter()


def _ledger_for_order(order_id: str, identity: Identity, store: ResourceStore) -> OrderLedger:
    """Ledger scoped to the caller; staff may only touch orders assigned to them."""
    ledger = OrderLedger(store, identity.tenant_id)
    if not identity.is_admin() and ledger.get(order_id).staff_id != identity.user_id:
        raise ForbiddenException(f"Order {order_id} is not assigned to you")
    return ledger


@router.post("", response_model=OrderRecord, status_code=status.HTTP_201_CREATED)
def create_order(
    order_data: OrderCreate,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Dispatch an order to a staff member.

    - Snapshots the chosen windows' balances (window_ids) or takes explicit
      window_snapshots
    - Fee and unit price default to tenant settings
    - Requires ADMIN
    """
    settings = SettingsService(store, identity.tenant_id).get_settings()
    return OrderLedger(store, identity.tenant_id).create(order_data, settings)


@router.get("", response_model=OrderListResponse)
def list_orders(
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    staff_id: Optional[str] = Query(None, description="Filter by staff (admin only)"),
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    List orders, newest first.

    - Staff only see orders assigned to them
    """
    if not identity.is_admin():
        staff_id = identity.user_id
    orders = OrderLedger(store, identity.tenant_id).list_orders(status=order_status, staff_id=staff_id)
    return OrderListResponse(orders=orders, total=len(orders))


@router.get("/{order_id}", response_model=OrderRecord)
def get_order(
    order_id: str,
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    return _ledger_for_order(order_id, identity, store).get(order_id)


@router.post("/{order_id}/complete", response_model=CompletionReport)
def complete_order(
    order_id: str,
    completion: OrderComplete,
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    Complete an order with the final per-window balances.

    - loss = max(0, total consumed - amount x 10000)
    - Window balances are written back best-effort; failures are listed
      in failed_window_ids
    - Returns 204 if the order has no window snapshots (nothing to do)
    """
    report = _ledger_for_order(order_id, identity, store).complete(
        order_id, completion.window_results
    )
    if report is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return report


@router.post("/{order_id}/pause", response_model=PauseResponse)
def pause_order(
    order_id: str,
    pause: OrderPause,
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    Pause an order, recording the amount completed so far.

    - Appends a work segment to the execution history
    - success is false if the store rejected the update
    """
    success = _ledger_for_order(order_id, identity, store).pause(order_id, pause.completed_amount)
    return PauseResponse(success=success)


@router.post("/{order_id}/resume", response_model=OrderRecord)
def resume_order(
    order_id: str,
    resume: OrderResume,
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    Resume a paused order.

    - Passing a different staff_id hands the order over (ADMIN only) and
      recomputes remaining_amount
    """
    ledger = _ledger_for_order(order_id, identity, store)
    if resume.staff_id is not None and resume.staff_id != identity.user_id and not identity.is_admin():
        raise ForbiddenException("Only tenant admins can reassign orders")
    return ledger.resume(order_id, resume.staff_id)


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: str,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """Delete an order. Windows are not touched."""
    OrderLedger(store, identity.tenant_id).delete(order_id)
