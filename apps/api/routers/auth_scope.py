"""Authentication dependencies for API user scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.exceptions import AuthenticationError
from services.identity import resolve_access_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the authenticated user from the identity provider's Bearer token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing authorization header")

    try:
        payload = resolve_access_token(credentials.credentials)
    except ValueError as exc:
        raise AuthenticationError("Unauthorized", detail=str(exc)) from exc

    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
    )
