"""
Periodic full reload of a tenant's collections.

There are no push notifications: callers read the cached snapshot and the
loop replaces it on a fixed interval. A collection whose fetch fails keeps
its previous cached value, so the view may be stale but is never emptied by
a transient store error.
"""

import asyncio
import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, UTC
from functools import partial
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from window_ledger.config import settings
from window_ledger.database import SessionLocal
from window_ledger.models.collection import Collection
from window_ledger.repositories.resource_store import ResourceStore, StoreResult, open_store
from window_ledger.schemas.order_schemas import OrderRecord
from window_ledger.schemas.request_schemas import WindowRequest
from window_ledger.schemas.settings_schemas import TenantSettings
from window_ledger.schemas.window_schemas import CloudMachine, CloudWindow, PurchaseRecord

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AbstractContextManager[ResourceStore]]
Subscriber = Callable[["TenantSnapshot"], None]

# collection -> (snapshot attribute, model)
_SOURCES: dict[Collection, tuple[str, Optional[type[BaseModel]]]] = {
    Collection.MACHINES: ("machines", CloudMachine),
    Collection.WINDOWS: ("windows", CloudWindow),
    Collection.ORDERS: ("orders", OrderRecord),
    Collection.PURCHASES: ("purchases", PurchaseRecord),
    Collection.REQUESTS: ("requests", WindowRequest),
    Collection.STAFF: ("staff", None),
    Collection.SETTINGS: ("settings", TenantSettings),
}


@dataclass
class TenantSnapshot:
    """Cached view of one tenant's records"""

    tenant_id: Optional[str] = None
    machines: list[CloudMachine] = field(default_factory=list)
    windows: list[CloudWindow] = field(default_factory=list)
    orders: list[OrderRecord] = field(default_factory=list)
    purchases: list[PurchaseRecord] = field(default_factory=list)
    requests: list[WindowRequest] = field(default_factory=list)
    staff: list[dict[str, Any]] = field(default_factory=list)
    settings: TenantSettings = field(default_factory=TenantSettings)
    loaded_at: Optional[datetime] = None


class SyncLoop:
    """
    Keeps a TenantSnapshot in step with the resource store.

    ``set_tenant`` reloads eagerly and starts the interval loop; setting
    the tenant to None clears the cache and halts the loop.
    """

    def __init__(
        self,
        store_factory: Optional[StoreFactory] = None,
        interval: float = settings.SYNC_INTERVAL_SECONDS,
    ):
        self.store_factory = store_factory or partial(open_store, SessionLocal)
        self.interval = interval
        self.snapshot = TenantSnapshot()
        self._task: Optional[asyncio.Task] = None
        self._subscribers: list[Subscriber] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback(snapshot)`` after every reload. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def set_tenant(self, tenant_id: Optional[str]) -> None:
        if tenant_id is None:
            await self.stop()
            self.snapshot = TenantSnapshot()
            return
        if tenant_id != self.snapshot.tenant_id:
            self.snapshot = TenantSnapshot(tenant_id=tenant_id)
        await self.reload(tenant_id)
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def reload(self, tenant_id: str) -> dict[Collection, bool]:
        """
        Fetch every collection in parallel and swap in the ones that succeeded.

        Returns:
            Per-collection success flags
        """
        if tenant_id != self.snapshot.tenant_id:
            self.snapshot = TenantSnapshot(tenant_id=tenant_id)

        sources = list(_SOURCES)
        results = await asyncio.gather(
            *(asyncio.to_thread(self._fetch, collection, tenant_id) for collection in sources),
            return_exceptions=True,
        )

        if self.snapshot.tenant_id != tenant_id:
            logger.info("Tenant changed during reload of %s, discarding results", tenant_id)
            return {collection: False for collection in sources}

        flags: dict[Collection, bool] = {}
        for collection, result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.error("Reload of %s for tenant %s raised: %s", collection.value, tenant_id, result)
                flags[collection] = False
            elif not result.success:
                logger.warning(
                    "Reload of %s for tenant %s failed, keeping cached copy: %s",
                    collection.value,
                    tenant_id,
                    result.error,
                )
                flags[collection] = False
            else:
                flags[collection] = self._replace(collection, result.data)

        self.snapshot.loaded_at = datetime.now(UTC)
        for callback in list(self._subscribers):
            try:
                callback(self.snapshot)
            except Exception:
                logger.exception("Sync subscriber failed for tenant %s", tenant_id)
        return flags

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            tenant_id = self.snapshot.tenant_id
            if tenant_id is None:
                return
            await self.reload(tenant_id)

    def _fetch(self, collection: Collection, tenant_id: str) -> StoreResult:
        with self.store_factory() as store:
            return store.list(collection, tenant_id)

    def _replace(self, collection: Collection, documents: list[dict[str, Any]]) -> bool:
        attr, model = _SOURCES[collection]
        try:
            if collection == Collection.SETTINGS:
                value = model.model_validate(documents[0]) if documents else TenantSettings()
            elif model is None:
                value = list(documents)
            else:
                value = [model.model_validate(doc) for doc in documents]
        except ValidationError as e:
            logger.warning("Malformed %s records, keeping cached copy: %s", collection.value, e)
            return False
        setattr(self.snapshot, attr, value)
        return True


class SyncHub:
    """One SyncLoop per tenant, started on first request and stopped on shutdown"""

    def __init__(
        self,
        store_factory: Optional[StoreFactory] = None,
        interval: float = settings.SYNC_INTERVAL_SECONDS,
    ):
        self.store_factory = store_factory
        self.interval = interval
        self._loops: dict[str, SyncLoop] = {}

    async def loop_for(self, tenant_id: str) -> SyncLoop:
        loop = self._loops.get(tenant_id)
        if loop is None:
            loop = SyncLoop(self.store_factory, interval=self.interval)
            self._loops[tenant_id] = loop
            await loop.set_tenant(tenant_id)
            logger.info("Sync loop started for tenant %s", tenant_id)
        return loop

    async def stop_all(self) -> None:
        for tenant_id, loop in list(self._loops.items()):
            await loop.set_tenant(None)
            logger.info("Sync loop stopped for tenant %s", tenant_id)
        self._loops.clear()
