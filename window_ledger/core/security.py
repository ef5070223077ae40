from jose import JWTError, jwt
from window_ledger.config import settings
from window_ledger.core.exceptions import UnauthorizedException


def decode_jwt(token: str) -> dict:
    """
    Decode and validate JWT token using shared SECRET_KEY.

    Args:
        token: JWT access token from Authorization header

    Returns:
        Decoded token payload with 'sub' (staff id), 'tenant_id', 'role', 'exp'

    Raises:
        UnauthorizedException: If token invalid, expired, or malformed
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])

        # Validate expiration (jose checks this automatically)
        exp = payload.get("exp")
        if exp is None:
            raise UnauthorizedException("Token missing expiration")

        # Extract staff id from 'sub' claim
        user_id: str = payload.get("sub")
        if user_id is None:
            raise UnauthorizedException("Token missing user identifier")

        if payload.get("tenant_id") is None:
            raise UnauthorizedException("Token missing tenant identifier")

        return payload

    except JWTError as e:
        raise UnauthorizedException(f"Invalid token: {str(e)}")


def extract_identity_claims(token: str) -> tuple[str, str, str]:
    """Extract (staff id, tenant id, role) from JWT token"""
    payload = decode_jwt(token)
    return str(payload["sub"]), str(payload["tenant_id"]), payload.get("role", "staff")
