"""Supabase access-token verification.

Tokens are issued by Supabase Auth (HS256, signed with the project's JWT
secret). This service never issues tokens; it only verifies them.

Claims used:
  - sub:                  member id
  - role:                 "authenticated" for members, "service_role" for back-office keys
  - app_metadata.role:    "admin" marks studio staff accounts
"""

from dataclasses import dataclass
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.rs_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


@dataclass(frozen=True)
class Principal:
    member_id: str
    role: str
    is_admin: bool


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a Supabase JWT. Raises InvalidCredentialsError."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
            # Supabase sets aud="authenticated"; service keys carry none
            options={"verify_aud": False},
        )
    except JWTError:
        raise InvalidCredentialsError() from None
    return payload


def principal_from_claims(payload: dict[str, Any]) -> Principal:
    role = str(payload.get("role") or "")
    app_metadata = payload.get("app_metadata") or {}
    is_admin = role == "service_role" or app_metadata.get("role") == "admin"
    member_id = str(payload.get("sub") or "")
    if not member_id and not is_admin:
        raise InvalidCredentialsError()
    return Principal(member_id=member_id, role=role, is_admin=is_admin)
