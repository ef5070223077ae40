"""Caller identity for request authorization."""

from dataclasses import dataclass
from window_ledger.models.role import StaffRole


@dataclass(frozen=True)
class Identity:
    """
    Identity supplied by the auth collaborator.

    Extracted from the JWT and used to scope every resource store call.
    The tenant id is treated as an opaque partition key.

    Attributes:
        user_id: Staff id of the caller (admins are staff records too)
        tenant_id: Tenant partition key
        role: Caller's role within the tenant
    """

    user_id: str
    tenant_id: str
    role: StaffRole

    def is_admin(self) -> bool:
        """Check if caller is a tenant admin."""
        return self.role == StaffRole.ADMIN

    def __repr__(self) -> str:
        return f"<Identity(user_id={self.user_id}, tenant_id={self.tenant_id}, role={self.role.value})>"
