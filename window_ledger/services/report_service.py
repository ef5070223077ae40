from collections import defaultdict

from window_ledger.core.exceptions import StoreFailureException
from window_ledger.models.collection import Collection
from window_ledger.models.order import COINS_PER_UNIT
from window_ledger.repositories.resource_store import ResourceStore
from window_ledger.schemas.order_schemas import OrderRecord
from window_ledger.schemas.settings_schemas import (
    DailyStats,
    GlobalStats,
    StaffStats,
    StatsResponse,
    TenantSettings,
)
from window_ledger.schemas.window_schemas import PurchaseRecord


def calculate_stats(
    purchases: list[PurchaseRecord], orders: list[OrderRecord], settings: TenantSettings
) -> StatsResponse:
    """
    Profit and inventory per order date, plus running totals.

    Purchases and losses are held in coins and converted to order units
    here; prices and rates are per 1000 units.
    """
    total_purchased = sum(p.amount for p in purchases) / COINS_PER_UNIT
    total_cost = sum(p.cost for p in purchases)
    avg_cost_per_unit = total_cost / total_purchased if total_purchased > 0 else 0
    avg_cost_per_1000 = avg_cost_per_unit * 1000

    orders_by_date: dict[str, list[OrderRecord]] = defaultdict(list)
    for order in orders:
        orders_by_date[order.date].append(order)

    daily: list[DailyStats] = []
    consumed_so_far = 0.0
    for day in sorted(orders_by_date):
        day_orders = orders_by_date[day]
        order_amount = sum(o.amount for o in day_orders)
        loss_amount = sum(o.loss for o in day_orders) / COINS_PER_UNIT
        revenue = sum(
            o.amount / 1000 * o.unit_price * (1 - o.fee_percent / 100) for o in day_orders
        )
        employee_cost = order_amount / 1000 * settings.employee_cost_rate
        cogs = (order_amount + loss_amount) / 1000 * avg_cost_per_1000

        consumed_so_far += order_amount + loss_amount
        purchased_to_date = sum(p.amount for p in purchases if p.date <= day) / COINS_PER_UNIT

        daily.append(
            DailyStats(
                date=day,
                order_amount=order_amount,
                loss_amount=loss_amount,
                revenue=revenue,
                employee_cost=employee_cost,
                cogs=cogs,
                profit=revenue - employee_cost - cogs,
                inventory_after=purchased_to_date - consumed_so_far,
                order_count=len(day_orders),
            )
        )

    current_inventory = total_purchased - consumed_so_far
    inventory_value = current_inventory / 1000 * avg_cost_per_1000
    total_profit = sum(d.profit for d in daily)
    current_cash = settings.initial_capital + total_profit - inventory_value

    return StatsResponse(
        daily=daily,
        overall=GlobalStats(
            total_purchased=total_purchased,
            total_cost=total_cost,
            avg_cost_per_1000=avg_cost_per_1000,
            current_inventory=current_inventory,
            inventory_value=inventory_value,
            total_profit=total_profit,
            current_cash=current_cash,
            total_assets=current_cash + inventory_value,
        ),
    )


def calculate_staff_stats(
    orders: list[OrderRecord], staff_list: list[dict], settings: TenantSettings
) -> list[StaffStats]:
    """
    Work credited to each staff member.

    Orders with an execution history credit each segment to whoever did
    it, with loss shared in proportion; orders without history credit the
    whole order to its assignee.
    """
    stats = []
    for staff in staff_list:
        staff_id = staff["id"]
        total_orders = 0
        total_amount = 0.0
        total_loss = 0.0

        for order in orders:
            loss_units = order.loss / COINS_PER_UNIT
            if order.execution_history:
                mine = [e for e in order.execution_history if e.staff_id == staff_id]
                if mine:
                    total_orders += 1
                    amount = sum(e.amount for e in mine)
                    total_amount += amount
                    total_loss += loss_units * (amount / order.amount)
            elif order.staff_id == staff_id:
                total_orders += 1
                total_amount += order.amount
                total_loss += loss_units

        stats.append(
            StaffStats(
                staff_id=staff_id,
                staff_name=staff.get("name") or "unknown",
                total_orders=total_orders,
                total_amount=total_amount,
                total_loss=total_loss,
                total_labor_cost_earned=total_amount / 1000 * settings.employee_cost_rate,
            )
        )
    return stats


class ReportService:
    """Reads purchases, orders and staff for the accounting views"""

    def __init__(self, store: ResourceStore, tenant_id: str):
        self.store = store
        self.tenant_id = tenant_id

    def stats(self, settings: TenantSettings) -> StatsResponse:
        purchases = [PurchaseRecord.model_validate(d) for d in self._list(Collection.PURCHASES)]
        orders = [OrderRecord.model_validate(d) for d in self._list(Collection.ORDERS)]
        return calculate_stats(purchases, orders, settings)

    def staff_stats(self, settings: TenantSettings) -> list[StaffStats]:
        orders = [OrderRecord.model_validate(d) for d in self._list(Collection.ORDERS)]
        staff = [s for s in self._list(Collection.STAFF) if s.get("role", "staff") == "staff"]
        return calculate_staff_stats(orders, staff, settings)

    def _list(self, collection: Collection) -> list[dict]:
        result = self.store.list(collection, self.tenant_id)
        if not result.success:
            raise StoreFailureException(f"Failed to list {collection.value}", result.error)
        return result.data
