"""Decides which pool subaccounts one aggregation request may query.

Administrators get every subaccount the pool lists, read through the proxy
so the listing is paginated and authorized like any other call. When that
listing fails or comes back empty, the subaccount names stored on local
user records stand in for it and a warning says so.
"""

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from pool_dashboard.auth.dependencies import CallerContext
from pool_dashboard.clients.proxy_client import ProxyClient
from pool_dashboard.contracts.pool import SubaccountListing
from pool_dashboard.db.repository import UserRepository
from pool_dashboard.errors import NotConfigured

logger = logging.getLogger(__name__)


@dataclass
class SubaccountResolution:
    names: list[str]
    warnings: list[str] = field(default_factory=list)


class SubaccountResolver:
    def __init__(self, proxy_client: ProxyClient, user_repository: UserRepository):
        self._proxy_client = proxy_client
        self._user_repository = user_repository

    async def resolve(self, caller: CallerContext, correlation_id: str) -> SubaccountResolution:
        if not caller.is_privileged:
            if not caller.external_subaccount_name:
                raise NotConfigured("No pool subaccount is configured for this account")
            return SubaccountResolution(names=[caller.external_subaccount_name])

        status_code, payload = await self._proxy_client.get(
            endpoint="subaccounts",
            params={},
            session_token=caller.session_token,
            correlation_id=correlation_id,
        )
        if status_code == 200 and payload.get("success"):
            try:
                listing = SubaccountListing.model_validate(payload.get("data") or {})
            except ValidationError:
                reason = "malformed listing"
            else:
                names = unique_names(subaccount.name for subaccount in listing.subaccounts)
                if names:
                    return SubaccountResolution(names=names)
                reason = "no subaccounts returned"
        else:
            reason = str(payload.get("error") or payload.get("detail") or f"status {status_code}")

        logger.warning("pool subaccount listing unusable (%s); falling back to local records", reason)
        warning = f"Pool subaccount listing unavailable ({reason}); using locally recorded subaccounts"
        return await self._local_fallback(warning)

    async def _local_fallback(self, warning: str) -> SubaccountResolution:
        try:
            names = await self._user_repository.list_external_subaccount_names()
        except SQLAlchemyError as exc:
            logger.warning("local subaccount lookup failed: %s", exc.__class__.__name__)
            await self._user_repository.rollback()
            return SubaccountResolution(
                names=[], warnings=[warning, "Local subaccount records unavailable"]
            )
        return SubaccountResolution(names=unique_names(names), warnings=[warning])


def unique_names(names) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for name in names:
        cleaned = (name or "").strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)
