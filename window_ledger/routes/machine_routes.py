from fastapi import APIRouter, Depends, status

from window_ledger.dependencies import get_store, require_admin
from window_ledger.models.identity import Identity
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.services.window_registry import WindowRegistry
from window_ledger.schemas.window_schemas import (
    CascadeDeleteReport,
    CloudMachine,
    MachineCreate,
    MachinePurchase,
    MachineUpdate,
    PurchaseReport,
    WindowBatchCreate,
    WindowBatchResponse,
)

router = APIRouter()


@router.get("", response_model=list[CloudMachine])
def list_machines(
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """List all cloud machines of the tenant."""
    return WindowRegistry(store, identity.tenant_id).list_machines()


@router.post("", response_model=CloudMachine, status_code=status.HTTP_201_CREATED)
def create_machine(
    machine_data: MachineCreate,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """Create an empty machine; add windows with the batch endpoint."""
    return WindowRegistry(store, identity.tenant_id).add_machine(machine_data)


@router.post("/purchase", response_model=PurchaseReport, status_code=status.HTTP_201_CREATED)
def purchase_machine(
    purchase: MachinePurchase,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Buy a machine with its windows.

    - Creates the machine, then each window, then a purchase ledger entry
    - Not atomic: the report names every sub-step that failed
    - Requires ADMIN
    """
    return WindowRegistry(store, identity.tenant_id).purchase_machine(purchase)


@router.patch("/{machine_id}", response_model=CloudMachine)
def update_machine(
    machine_id: str,
    machine_data: MachineUpdate,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    return WindowRegistry(store, identity.tenant_id).update_machine(machine_id, machine_data)


@router.post(
    "/{machine_id}/windows",
    response_model=WindowBatchResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_windows(
    machine_id: str,
    batch: WindowBatchCreate,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Create several windows under one machine.

    - Returns 404 if the machine doesn't exist
    - Windows that failed to create are listed in the response
    """
    return WindowRegistry(store, identity.tenant_id).create_batch(machine_id, batch.windows)


@router.delete("/{machine_id}", response_model=CascadeDeleteReport)
def delete_machine(
    machine_id: str,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Delete a machine and all of its windows.

    - Windows that could not be deleted are listed, not rolled back
    """
    return WindowRegistry(store, identity.tenant_id).delete_cascade(machine_id)
