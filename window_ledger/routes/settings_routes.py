from fastapi import APIRouter, Depends

from window_ledger.dependencies import get_identity, get_store, require_admin
from window_ledger.models.identity import Identity
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.services.report_service import ReportService
from window_ledger.services.settings_service import SettingsService
from window_ledger.schemas.settings_schemas import StaffStats, StatsResponse, TenantSettings

router = APIRouter()


@router.get("/settings", response_model=TenantSettings)
def get_settings(
    identity: Identity = Depends(get_identity),
    store: ResourceStore = Depends(get_store),
):
    """Tenant settings, or defaults when none are saved."""
    return SettingsService(store, identity.tenant_id).get_settings()


@router.put("/settings", response_model=TenantSettings)
def save_settings(
    new_settings: TenantSettings,
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    return SettingsService(store, identity.tenant_id).save_settings(new_settings)


@router.get("/reports/stats", response_model=StatsResponse)
def get_stats(
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """
    Daily and overall profit, cost and inventory figures.

    - Amounts are in order units (10 000 coins)
    """
    settings = SettingsService(store, identity.tenant_id).get_settings()
    return ReportService(store, identity.tenant_id).stats(settings)


@router.get("/reports/staff", response_model=list[StaffStats])
def get_staff_stats(
    identity: Identity = Depends(require_admin),
    store: ResourceStore = Depends(get_store),
):
    """Work, loss share and labour cost per staff member."""
    settings = SettingsService(store, identity.tenant_id).get_settings()
    return ReportService(store, identity.tenant_id).staff_stats(settings)
