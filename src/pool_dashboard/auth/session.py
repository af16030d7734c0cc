"""Session token verification.

Tokens are HS256 JWTs issued by the hosting portal's login flow. This
service only verifies them; it never issues or refreshes tokens.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from jose import JWTError, jwt

from pool_dashboard.config import settings


class InvalidSessionToken(Exception):
    pass


@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    role: str | None
    expires_at: datetime | None


def verify_session_token(token: str) -> SessionClaims:
    """Decode a session token, raising InvalidSessionToken if it cannot be trusted.

    Expiry is enforced by ``jwt.decode`` whenever the token carries ``exp``.
    The role claim is informational only: callers load the authoritative
    role from the database.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],  # Explicit list prevents algorithm confusion
        )
    except JWTError as exc:
        raise InvalidSessionToken("invalid or expired session token") from exc

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise InvalidSessionToken("session token has no subject")

    expires_at = None
    if payload.get("exp") is not None:
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
    return SessionClaims(user_id=str(user_id), role=payload.get("role"), expires_at=expires_at)
