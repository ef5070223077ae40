import logging
from datetime import datetime, UTC
from typing import Callable, Optional

from window_ledger.core.exceptions import (
    NotFoundException,
    StoreFailureException,
    ValidationException,
    WindowLedgerException,
)
from window_ledger.models.collection import Collection
from window_ledger.models.order import AMOUNT_PRECISION, COINS_PER_UNIT, OrderStatus
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.schemas.order_schemas import (
    CompletionReport,
    ExecutionEntry,
    OrderCreate,
    OrderRecord,
    WindowResult,
    WindowSnapshot,
)
from window_ledger.schemas.settings_schemas import TenantSettings
from window_ledger.services.window_registry import WindowRegistry

logger = logging.getLogger(__name__)

UNKNOWN_STAFF = "unknown"


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class OrderLedger:
    """
    Service layer for the order lifecycle.

    pending --complete--> completed
    pending --pause--> paused --resume(staff?)--> pending

    Nothing leaves ``completed``. Every work segment is appended to the
    order's execution history with the staff name captured at write time.
    """

    def __init__(
        self,
        store: ResourceStore,
        tenant_id: str,
        registry: Optional[WindowRegistry] = None,
        clock: Callable[[], str] = _utc_now,
    ):
        self.store = store
        self.tenant_id = tenant_id
        self.registry = registry or WindowRegistry(store, tenant_id)
        self.clock = clock

    def get(self, order_id: str) -> OrderRecord:
        result = self.store.get(Collection.ORDERS, self.tenant_id, order_id)
        if not result.success:
            raise StoreFailureException(f"Failed to load order {order_id}", result.error)
        if result.data is None:
            raise NotFoundException(f"Order {order_id} not found")
        return OrderRecord.model_validate(result.data)

    def list_orders(
        self, status: Optional[OrderStatus] = None, staff_id: Optional[str] = None
    ) -> list[OrderRecord]:
        result = self.store.list(Collection.ORDERS, self.tenant_id)
        if not result.success:
            raise StoreFailureException("Failed to list orders", result.error)
        orders = [OrderRecord.model_validate(doc) for doc in result.data]
        if status is not None:
            orders = [o for o in orders if o.status == status]
        if staff_id is not None:
            orders = [o for o in orders if o.staff_id == staff_id]
        return sorted(orders, key=lambda o: o.date, reverse=True)

    def create(self, order_data: OrderCreate, settings: TenantSettings) -> OrderRecord:
        """
        Dispatch a new pending order with its window allocation snapshot.

        Snapshots come from ``window_snapshots`` when given, otherwise they
        are taken from the current balances of ``window_ids``. Fee and unit
        price default to the tenant settings.

        Raises:
            ValidationException: If no windows are allocated
            NotFoundException: If a listed window doesn't exist
        """
        if order_data.window_snapshots:
            snapshots = order_data.window_snapshots
        elif order_data.window_ids:
            snapshots = self._snapshot_windows(order_data.window_ids)
        else:
            raise ValidationException("An order needs at least one window")

        payload = {
            "staff_id": order_data.staff_id,
            "amount": order_data.amount,
            "date": order_data.date.isoformat(),
            "status": OrderStatus.PENDING.value,
            "fee_percent": (
                order_data.fee_percent
                if order_data.fee_percent is not None
                else settings.default_fee_percent
            ),
            "unit_price": (
                order_data.unit_price
                if order_data.unit_price is not None
                else settings.order_unit_price
            ),
            "loss": 0,
            "window_snapshots": [s.model_dump() for s in snapshots],
            "execution_history": [],
        }
        result = self.store.add(Collection.ORDERS, self.tenant_id, payload)
        if not result.success:
            raise StoreFailureException("Failed to create order", result.error)

        logger.info(
            "Order %s dispatched to %s: %s units over %d windows",
            result.id,
            order_data.staff_id,
            order_data.amount,
            len(snapshots),
        )
        return OrderRecord.model_validate(result.data)

    def complete(
        self, order_id: str, window_results: list[WindowResult]
    ) -> Optional[CompletionReport]:
        """
        Close an order, compute loss and write final window balances back.

        Loss is the coin consumption beyond the order amount, never
        negative. The remaining undelivered amount is credited to the
        current staff member as a final work segment. Window write-backs are
        best-effort: failures are listed in the report and the completed
        order stays completed.

        Returns:
            The report, or None if the order has no window snapshots

        Raises:
            NotFoundException: If the order doesn't exist
            ValidationException: If the order is not pending, or a result names a
                window the order never earmarked
            StoreFailureException: If the order update itself fails
        """
        order = self.get(order_id)
        if not order.window_snapshots:
            logger.info("Order %s has no window snapshots, nothing to complete", order_id)
            return None
        if order.status != OrderStatus.PENDING:
            raise ValidationException(f"Order {order_id} is {order.status.value}, cannot complete")

        earmarked = {s.window_id for s in order.window_snapshots}
        unknown = [r.window_id for r in window_results if r.window_id not in earmarked]
        if unknown:
            raise ValidationException(f"Order {order_id} has no snapshot for windows {unknown}")

        total_consumed = sum(r.consumed for r in window_results)
        order_amount_in_coins = round(order.amount * COINS_PER_UNIT)
        loss = max(0, total_consumed - order_amount_in_coins)

        now = self.clock()
        history = list(order.execution_history)
        this_execution = round(order.amount - order.delivered_amount(), AMOUNT_PRECISION)
        if this_execution > 0:
            history.append(self._entry(order, this_execution, now))

        order = self._save(
            order_id,
            {
                "status": OrderStatus.COMPLETED.value,
                "window_results": [r.model_dump() for r in window_results],
                "total_consumed": total_consumed,
                "loss": loss,
                "execution_history": [e.model_dump() for e in history],
            },
        )

        failed: list[str] = []
        for window_result in window_results:
            try:
                self.registry.set_balance(window_result.window_id, window_result.end_balance)
            except WindowLedgerException as e:
                logger.warning(
                    "Order %s completed but window %s balance not written: %s",
                    order_id,
                    window_result.window_id,
                    e,
                )
                failed.append(window_result.window_id)

        logger.info(
            "Order %s completed: consumed %d coins, loss %d", order_id, total_consumed, loss
        )
        return CompletionReport(order=order, failed_window_ids=failed)

    def pause(self, order_id: str, completed_amount: float) -> bool:
        """
        Pause an order, recording progress made so far.

        The segment credited is the progress since the last entry. If that
        comes out non-positive the whole ``completed_amount`` is credited
        instead, so a pause always records forward progress.

        Returns:
            True if the order was saved, False if the store rejected it

        Raises:
            NotFoundException: If the order doesn't exist
            ValidationException: If the order is completed or
                ``completed_amount`` exceeds the order amount
        """
        order = self.get(order_id)
        if order.status == OrderStatus.COMPLETED:
            raise ValidationException(f"Order {order_id} is completed, cannot pause")
        if round(completed_amount - order.amount, AMOUNT_PRECISION) > 0:
            raise ValidationException(
                f"Completed amount {completed_amount} exceeds order amount {order.amount}"
            )

        this_execution = round(completed_amount - order.delivered_amount(), AMOUNT_PRECISION)
        segment = this_execution if this_execution > 0 else completed_amount

        history = list(order.execution_history)
        history.append(self._entry(order, segment, self.clock()))

        result = self.store.update(
            Collection.ORDERS,
            self.tenant_id,
            order_id,
            {
                "status": OrderStatus.PAUSED.value,
                "completed_amount": completed_amount,
                "execution_history": [e.model_dump() for e in history],
            },
        )
        if not result.success:
            logger.error("Pausing order %s failed: %s", order_id, result.error)
            return False
        return True

    def resume(self, order_id: str, new_staff_id: Optional[str] = None) -> OrderRecord:
        """
        Put an order back to pending, optionally handing it to another staff member.

        On hand-over ``remaining_amount`` becomes ``amount - completed_amount``.

        Raises:
            NotFoundException: If the order doesn't exist
            ValidationException: If the order is completed
        """
        order = self.get(order_id)
        if order.status == OrderStatus.COMPLETED:
            raise ValidationException(f"Order {order_id} is completed, cannot resume")

        partial: dict = {"status": OrderStatus.PENDING.value}
        if new_staff_id is not None and new_staff_id != order.staff_id:
            partial["staff_id"] = new_staff_id
            partial["remaining_amount"] = order.amount - (order.completed_amount or 0)
            logger.info("Order %s handed over %s -> %s", order_id, order.staff_id, new_staff_id)

        return self._save(order_id, partial)

    def delete(self, order_id: str) -> None:
        """Remove an order. Its windows are left untouched."""
        self.get(order_id)
        result = self.store.delete(Collection.ORDERS, self.tenant_id, order_id)
        if not result.success:
            raise StoreFailureException(f"Failed to delete order {order_id}", result.error)

    # Helpers

    def _snapshot_windows(self, window_ids: list[str]) -> list[WindowSnapshot]:
        snapshots = []
        for window_id in window_ids:
            window = self.registry.get_window(window_id)
            snapshots.append(
                WindowSnapshot(
                    window_id=window.id,
                    machine_id=window.machine_id,
                    window_number=window.window_number,
                    machine_name=self.registry.machine_label(window.machine_id),
                    start_balance=window.gold_balance,
                )
            )
        return snapshots

    def _entry(self, order: OrderRecord, amount: float, now: str) -> ExecutionEntry:
        return ExecutionEntry(
            staff_id=order.staff_id,
            staff_name=self._resolve_staff_name(order.staff_id),
            amount=amount,
            start_time=now if order.execution_history else order.date,
            end_time=now,
        )

    def _resolve_staff_name(self, staff_id: str) -> str:
        result = self.store.get(Collection.STAFF, self.tenant_id, staff_id)
        if not result.success or result.data is None:
            return UNKNOWN_STAFF
        return result.data.get("name") or UNKNOWN_STAFF

    def _save(self, order_id: str, partial: dict) -> OrderRecord:
        result = self.store.update(Collection.ORDERS, self.tenant_id, order_id, partial)
        if not result.success:
            raise StoreFailureException(f"Failed to update order {order_id}", result.error)
        return OrderRecord.model_validate(result.data)
