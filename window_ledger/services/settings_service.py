import logging

from window_ledger.core.exceptions import StoreFailureException
from window_ledger.models.collection import Collection
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.schemas.settings_schemas import TenantSettings

logger = logging.getLogger(__name__)


class SettingsService:
    """Tenant-scoped singleton configuration consumed by accounting"""

    def __init__(self, store: ResourceStore, tenant_id: str):
        self.store = store
        self.tenant_id = tenant_id

    def get_settings(self) -> TenantSettings:
        """Stored settings, or the defaults when the tenant has none or the read fails"""
        result = self.store.list(Collection.SETTINGS, self.tenant_id)
        if not result.success:
            logger.warning("Falling back to default settings for tenant %s", self.tenant_id)
            return TenantSettings()
        if not result.data:
            return TenantSettings()
        return TenantSettings.model_validate(result.data[0])

    def save_settings(self, new_settings: TenantSettings) -> TenantSettings:
        result = self.store.list(Collection.SETTINGS, self.tenant_id)
        if not result.success:
            raise StoreFailureException("Failed to load settings", result.error)

        payload = new_settings.model_dump()
        if result.data:
            result = self.store.update(
                Collection.SETTINGS, self.tenant_id, result.data[0]["id"], payload
            )
        else:
            result = self.store.add(Collection.SETTINGS, self.tenant_id, payload)
        if not result.success:
            raise StoreFailureException("Failed to save settings", result.error)
        return new_settings
