from enum import Enum as PyEnum


class Collection(str, PyEnum):
    """Names of the record collections held in the resource store"""

    MACHINES = "cloud_machines"
    WINDOWS = "cloud_windows"
    ORDERS = "orders"
    PURCHASES = "purchases"
    REQUESTS = "window_requests"
    RECHARGES = "window_recharges"
    STAFF = "staff"
    SETTINGS = "settings"
