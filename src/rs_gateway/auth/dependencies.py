"""FastAPI dependencies: get_current_principal, require_admin.

Usage in any protected router:
    from src.rs_gateway.auth.dependencies import get_current_principal

    @router.get("/protected")
    async def protected(principal: Principal = Depends(get_current_principal)):
        ...
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.rs_common.errors import ForbiddenError, InvalidCredentialsError
from src.rs_gateway.auth.jwt_handler import Principal, decode_token, principal_from_claims

_bearer = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Principal:
    """Validate the Supabase Bearer token and return the caller.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        return principal_from_claims(decode_token(credentials.credentials))
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None


async def require_admin(
    principal: Principal = Depends(get_current_principal),
) -> Principal:
    """Studio staff only (service_role key or app_metadata.role == "admin")."""
    if not principal.is_admin:
        raise ForbiddenError("Admin access required")
    return principal


def ensure_self_or_admin(principal: Principal, member_id: str) -> None:
    """Members may only read or change their own credits and bookings."""
    if not principal.is_admin and principal.member_id != member_id:
        raise ForbiddenError("Members may only act on their own account")
