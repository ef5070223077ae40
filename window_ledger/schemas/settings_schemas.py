from pydantic import BaseModel, Field


class TenantSettings(BaseModel):
    """Tenant-wide accounting configuration"""

    employee_cost_rate: float = Field(12, ge=0, description="Currency per 1000 units of labour")
    order_unit_price: float = Field(60, ge=0, description="Default currency per 1000 units")
    default_fee_percent: float = Field(7, ge=0, le=100)
    initial_capital: float = 10000


class DailyStats(BaseModel):
    date: str
    order_amount: float
    loss_amount: float
    revenue: float
    employee_cost: float
    cogs: float
    profit: float
    inventory_after: float
    order_count: int


class GlobalStats(BaseModel):
    total_purchased: float
    total_cost: float
    avg_cost_per_1000: float
    current_inventory: float
    inventory_value: float
    total_profit: float
    current_cash: float
    total_assets: float


class StatsResponse(BaseModel):
    daily: list[DailyStats]
    overall: GlobalStats


class StaffStats(BaseModel):
    staff_id: str
    staff_name: str
    total_orders: int
    total_amount: float
    total_loss: float
    total_labor_cost_earned: float
