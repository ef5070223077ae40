from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from window_ledger.core.security import extract_identity_claims
from window_ledger.core.exceptions import UnauthorizedException, ForbiddenException
from window_ledger.database import get_db
from window_ledger.models.identity import Identity
from window_ledger.models.role import StaffRole
from window_ledger.repositories.resource_store import ResourceStore

security = HTTPBearer()


async def get_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Identity:
    """
    FastAPI dependency to validate JWT and build the caller identity.

    Flow:
    1. Extract token from Authorization: Bearer <token>
    2. Validate JWT using shared SECRET_KEY
    3. Read staff id ('sub'), 'tenant_id' and 'role' claims
    4. Return Identity used to scope every store call

    Raises:
        HTTPException 401: If token invalid, expired or missing claims
    """
    try:
        user_id, tenant_id, role = extract_identity_claims(credentials.credentials)
        return Identity(user_id=user_id, tenant_id=tenant_id, role=StaffRole(role))

    except (UnauthorizedException, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """FastAPI dependency gating admin-only operations"""
    if not identity.is_admin():
        raise ForbiddenException("Only tenant admins can perform this operation")
    return identity


def get_store(db: Session = Depends(get_db)) -> ResourceStore:
    """FastAPI dependency yielding a resource store bound to the request session"""
    return ResourceStore(db)
