"""Staff role enum for role gating."""

from enum import Enum as PyEnum


class StaffRole(str, PyEnum):
    """
    Roles supplied by the auth collaborator.

    - ADMIN: tenant owner; manages machines, windows, orders, settings and
      arbitrates window requests
    - STAFF: works through assigned orders and submits window requests
    """

    ADMIN = "admin"
    STAFF = "staff"
