"""FastAPI dependency resolving the authenticated caller.

Usage in any protected router:
    from pool_dashboard.auth.dependencies import get_caller_context

    @router.get("/protected")
    async def protected(caller: CallerContext = Depends(get_caller_context)):
        ...
"""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pool_dashboard.auth.session import InvalidSessionToken, verify_session_token
from pool_dashboard.config import settings
from pool_dashboard.db.database import get_db_session
from pool_dashboard.db.repository import UserRepository
from pool_dashboard.enums import PRIVILEGED_ROLES, Role
from pool_dashboard.errors import Unauthenticated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerContext:
    user_id: str
    role: Role
    external_subaccount_name: str | None
    # forwarded on loopback calls so the proxy re-authenticates the same caller
    session_token: str

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES


def extract_session_token(request: Request) -> str | None:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_caller_context(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> CallerContext:
    token = extract_session_token(request)
    if not token:
        raise Unauthenticated("Authentication required")
    try:
        claims = verify_session_token(token)
    except InvalidSessionToken:
        raise Unauthenticated("Invalid or expired session") from None

    user = await UserRepository(db).get_user_by_id(claims.user_id)
    if user is None:
        logger.warning("session token references unknown user %s", claims.user_id)
        raise Unauthenticated("Invalid or expired session")

    subaccount_name = (user.external_subaccount_name or "").strip() or None
    return CallerContext(
        user_id=user.id,
        role=Role(user.role),
        external_subaccount_name=subaccount_name,
        session_token=token,
    )
