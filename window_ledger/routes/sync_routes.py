from fastapi import APIRouter, Depends, Request

from window_ledger.dependencies import require_admin
from window_ledger.models.identity import Identity
from window_ledger.services.sync_loop import SyncHub
from window_ledger.schemas.sync_schemas import ReloadResponse, SnapshotResponse

router = APIRouter()


def get_sync_hub(request: Request) -> SyncHub:
    return request.app.state.sync_hub


@router.get("/snapshot", response_model=SnapshotResponse)
async def get_snapshot(
    identity: Identity = Depends(require_admin),
    hub: SyncHub = Depends(get_sync_hub),
):
    """
    Cached view of the tenant's records.

    - The first call loads the tenant and starts its refresh loop
    - Later calls return the cache; it may lag writes by one interval
    - A collection whose last fetch failed keeps its previous copy
    """
    loop = await hub.loop_for(identity.tenant_id)
    return SnapshotResponse.model_validate(loop.snapshot)


@router.post("/reload", response_model=ReloadResponse)
async def reload_snapshot(
    identity: Identity = Depends(require_admin),
    hub: SyncHub = Depends(get_sync_hub),
):
    """Refresh the tenant's cache now instead of waiting for the next interval."""
    loop = await hub.loop_for(identity.tenant_id)
    flags = await loop.reload(identity.tenant_id)
    return ReloadResponse(
        collections={collection.value: ok for collection, ok in flags.items()},
        loaded_at=loop.snapshot.loaded_at,
    )
