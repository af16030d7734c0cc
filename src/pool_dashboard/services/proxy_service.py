"""Forwards logical-endpoint requests to the pool provider.

The order of checks is fixed: the endpoint name and method are validated,
then the caller's role, then tenant scope is applied, and only then are
path parameters extracted and the typed client accessor called.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from pool_dashboard.auth.dependencies import CallerContext
from pool_dashboard.clients.pool_client import PoolApiClient
from pool_dashboard.contracts.proxy import ProxyEnvelope
from pool_dashboard.errors import Forbidden, NotConfigured, ValidationFailed
from pool_dashboard.services.endpoint_registry import (
    ENDPOINTS,
    LogicalEndpoint,
    supported_endpoints,
)

logger = logging.getLogger(__name__)

SCOPE_PARAM = "subaccount_names"


class ProxyService:
    def __init__(
        self,
        pool_client: PoolApiClient,
        subaccount_page_size: int = 100,
        subaccount_max_pages: int = 500,
    ):
        self._pool_client = pool_client
        self._subaccount_page_size = subaccount_page_size
        self._subaccount_max_pages = subaccount_max_pages

    async def forward(
        self,
        caller: CallerContext,
        endpoint_name: str | None,
        method: str,
        params: dict[str, Any],
    ) -> ProxyEnvelope:
        method = method.upper()
        entry = resolve_endpoint(endpoint_name, method)
        if entry.admin_only and not caller.is_privileged:
            raise Forbidden(f'Endpoint "{entry.name}" requires administrator access')

        remaining = dict(params)
        if entry.scoped and not caller.is_privileged:
            apply_tenant_scope(caller, entry.name, remaining)

        kwargs: dict[str, Any] = {}
        if entry.requires_currency:
            kwargs["currency"] = _pop_required(remaining, "currency", entry).upper()
        else:
            remaining.pop("currency", None)
        for name in entry.path_params:
            kwargs[name] = _pop_required(remaining, name, entry)

        if entry.paginated:
            # the listing walks every page itself
            remaining.pop("page_number", None)
            remaining.pop("page_size", None)
            kwargs["page_size"] = self._subaccount_page_size
            kwargs["max_pages"] = self._subaccount_max_pages

        if entry.accepts_body:
            kwargs["body"] = remaining
        else:
            kwargs["params"] = remaining

        accessor = getattr(self._pool_client, entry.accessor)
        result = await accessor(**kwargs)
        return ProxyEnvelope(
            success=True,
            data=result.model_dump(mode="json", by_alias=True),
            timestamp=datetime.now(UTC).isoformat(),
        )


def resolve_endpoint(endpoint_name: str | None, method: str) -> LogicalEndpoint:
    if not endpoint_name:
        raise ValidationFailed("Missing required parameter: endpoint")
    entry = ENDPOINTS.get(endpoint_name)
    if entry is None:
        raise ValidationFailed(
            f'Unsupported endpoint: "{endpoint_name}". '
            f"Supported endpoints: {', '.join(supported_endpoints())}"
        )
    if method not in entry.methods:
        raise ValidationFailed(
            f'Endpoint "{endpoint_name}" does not support {method}. '
            f"Allowed methods: {', '.join(sorted(entry.methods))}"
        )
    return entry


def apply_tenant_scope(caller: CallerContext, endpoint_name: str, params: dict[str, Any]) -> None:
    """Pin a tenant's request to their own subaccount, whatever they asked for."""
    own_subaccount = caller.external_subaccount_name
    if not own_subaccount:
        raise NotConfigured("No pool subaccount is configured for this account")
    requested = params.get(SCOPE_PARAM)
    if requested and requested != own_subaccount:
        logger.warning(
            "ignoring %s requested by user %s on %s", SCOPE_PARAM, caller.user_id, endpoint_name
        )
    params[SCOPE_PARAM] = own_subaccount


def _pop_required(params: dict[str, Any], name: str, entry: LogicalEndpoint) -> str:
    value = params.pop(name, None)
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationFailed(f'Endpoint "{entry.name}" requires a {name} parameter')
    return text
