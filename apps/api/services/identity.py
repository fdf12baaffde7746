"""Bearer access tokens issued by the identity provider.

The API never authenticates users itself; it trusts an HS256 token whose
subject is the account id. ``issue_access_token`` exists for the identity
service and for tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from config import settings


ACCESS_TOKEN_TYPE = "access"


def issue_access_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    ttl_hours = int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24)
    expires_at = now + timedelta(hours=max(ttl_hours, 1))
    claims: Dict[str, Any] = {
        "sub": user_id,
        "typ": ACCESS_TOKEN_TYPE,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    if email:
        claims["email"] = email

    return {
        "token": jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": int(expires_at.timestamp()),
    }


def resolve_access_token(token: str) -> Dict[str, Any]:
    """Validate a bearer token and return its claims. Raises ValueError."""
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except ExpiredSignatureError as exc:
        raise ValueError("Access token expired.") from exc
    except JWTError as exc:
        raise ValueError("Invalid access token.") from exc

    if str(claims.get("typ", "")).strip() != ACCESS_TOKEN_TYPE:
        raise ValueError("Invalid access token type.")
    if not str(claims.get("sub", "")).strip():
        raise ValueError("Access token missing subject.")
    return claims
