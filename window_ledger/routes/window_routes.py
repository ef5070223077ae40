from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from window_ledger.dependencies import get_identity, get_store, require_admin
from window_ledger.models.identity import Identity
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.services.window_registry import WindowRegistry
from window_ledger.schemas.window_schemas import (
    CloudWindow,
    WindowAssign,
    WindowBalanceSet,
    WindowCreate,
    WindowRecharge,
    WindowRechargeCreate,
)

router = APIRouter()


@router.get("", response_model=list[CloudWindow])
def list_windows(
    machine_id: Optional[str] = Query(None, description="Filter by machine"),
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """
    List windows.

    - Admins see every window of the tenant
    - Staff see only the windows assigned to them
    """
    registry = WindowRegistry(store, identity.tenant_id)
    if not identity.is_admin():
        windows = registry.windows_for_staff(identity.user_id)
        if machine_id is not None:
            windows = [w for w in windows if w.machine_id == machine_id]
        return windows
    return registry.list_windows(machine_id=machine_id)


@router.post("", response_model=CloudWindow, status_code=status.HTTP_201_CREATED)
def create_window(
    window_data: WindowCreate,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """Create a single window under an existing machine."""
    return WindowRegistry(store, identity.tenant_id).add_window(window_data)


@router.get("/{window_id}", response_model=CloudWindow)
def get_window(
    window_id: str,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    return WindowRegistry(store, identity.tenant_id).get_window(window_id)


@router.put("/{window_id}/assignee", response_model=CloudWindow)
def assign_window(
    window_id: str,
    assignment: WindowAssign,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Assign a window to a staff member, or free it with a null user_id.

    - Idempotent when the staff member already holds the window
    - Last write wins; there is no concurrency check
    """
    return WindowRegistry(store, identity.tenant_id).assign(window_id, assignment.user_id)


@router.post("/{window_id}/recharge", response_model=CloudWindow)
def recharge_window(
    window_id: str,
    recharge: WindowRechargeCreate,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Add a signed coin delta to a window.

    - Returns 400 if the delta is zero or would make the balance negative
    """
    return WindowRegistry(store, identity.tenant_id).recharge(
        window_id, recharge.amount, identity.user_id
    )


@router.get("/{window_id}/recharges", response_model=list[WindowRecharge])
def list_window_recharges(
    window_id: str,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    return WindowRegistry(store, identity.tenant_id).list_recharges(window_id=window_id)


@router.put("/{window_id}/balance", response_model=CloudWindow)
def set_window_balance(
    window_id: str,
    balance: WindowBalanceSet,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """Overwrite a window's balance."""
    return WindowRegistry(store, identity.tenant_id).set_balance(window_id, balance.gold_balance)


@router.delete("/{window_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_window(
    window_id: str,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    WindowRegistry(store, identity.tenant_id).delete_window(window_id)
