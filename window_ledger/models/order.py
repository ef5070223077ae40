from enum import Enum as PyEnum

# 1 order unit = 10 000 gold coins. Fixed; never configurable per tenant.
COINS_PER_UNIT = 10_000


class OrderStatus(str, PyEnum):
    """Order lifecycle states"""

    PENDING = "pending"
    PAUSED = "paused"
    COMPLETED = "completed"

# Order amounts are compared after rounding to this many decimals
AMOUNT_PRECISION = 6
