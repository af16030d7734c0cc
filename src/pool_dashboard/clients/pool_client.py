"""Client for the pool provider's REST API.

This is the only module that attaches the pool credential to a request.
Every typed accessor goes through ``request`` and validates the upstream
payload with a pydantic model before handing it back. The client never
retries: retry policy belongs to its callers.
"""

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from pool_dashboard.contracts.pool import (
    ActiveWorkersResponse,
    Group,
    GroupSubaccount,
    GroupSubaccountList,
    HashrateEfficiencyResponse,
    RevenueResponse,
    Subaccount,
    SubaccountListing,
    SubaccountPage,
    SummaryResponse,
    WorkersResponse,
    Workspace,
    WorkspaceAction,
)
from pool_dashboard.middleware.correlation import correlation_id_var, propagation_headers

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_STATUS_MESSAGES = {
    400: "Bad request: invalid parameters",
    401: "Unauthorized: check pool API credentials",
    403: "Forbidden",
    404: "Endpoint not found",
    429: "Rate limited: retry later",
}


class PoolApiError(Exception):
    def __init__(
        self,
        status_code: int,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UpstreamSchemaError(PoolApiError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(502, message, details)


def describe_status(status_code: int) -> str:
    if status_code in _STATUS_MESSAGES:
        return _STATUS_MESSAGES[status_code]
    if status_code >= 500:
        return "Upstream server error"
    return f"Upstream returned status {status_code}"


def build_query_params(params: dict[str, Any] | None) -> dict[str, str]:
    """Drop parameters without a value so they never reach the query string."""
    if not params:
        return {}
    query: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        text = str(value)
        if not text.strip():
            continue
        query[key] = text
    return query


class PoolApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 30.0,
        auth_scheme: str = "Bearer",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._auth_scheme = auth_scheme
        self._transport = transport

    async def request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        method: str = "GET",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"
        method = method.upper()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    params=build_query_params(params),
                    json=body,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as exc:
            logger.warning("pool API %s %s timed out", method, path)
            raise PoolApiError(
                504, "Upstream timed out", {"error": exc.__class__.__name__}
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("pool API %s %s unreachable: %s", method, path, exc.__class__.__name__)
            raise PoolApiError(
                503, "Upstream unreachable", {"error": exc.__class__.__name__}
            ) from exc

        payload = self._response_payload(response)
        if response.status_code >= 400:
            upstream_message = payload.get("message") or payload.get("detail")
            message = describe_status(response.status_code)
            if upstream_message:
                message = f"{message}: {upstream_message}"
            logger.warning("pool API %s %s returned %s", method, path, response.status_code)
            raise PoolApiError(response.status_code, message, payload)
        return payload

    async def get_workspace(self, params: dict[str, Any] | None = None) -> Workspace:
        payload = await self.request("/workspace", params)
        return self._validate(Workspace, payload, "/workspace")

    async def list_subaccounts(self, params: dict[str, Any] | None = None) -> SubaccountPage:
        payload = await self.request("/pool/subaccounts", params)
        return self._validate(SubaccountPage, payload, "/pool/subaccounts")

    async def list_all_subaccounts(
        self,
        params: dict[str, Any] | None = None,
        page_size: int = 100,
        max_pages: int = 500,
    ) -> SubaccountListing:
        """Walk the subaccount listing until the upstream stops linking a next page."""
        collected: list[Subaccount] = []
        page_number = 1
        while True:
            if page_number > max_pages:
                raise UpstreamSchemaError(
                    f"Subaccount listing did not terminate after {max_pages} pages"
                )
            page = await self.list_subaccounts(
                {**(params or {}), "page_number": page_number, "page_size": page_size}
            )
            collected.extend(page.subaccounts)
            if page.pagination is None or not page.pagination.next_page_url:
                break
            page_number += 1
        logger.info("listed %s subaccounts across %s pages", len(collected), page_number)
        return SubaccountListing(subaccounts=collected, total=len(collected))

    async def get_workers(
        self, currency: str, params: dict[str, Any] | None = None
    ) -> WorkersResponse:
        path = f"/pool/workers/{currency}"
        return self._validate(WorkersResponse, await self.request(path, params), path)

    async def get_active_workers(
        self, currency: str, params: dict[str, Any] | None = None
    ) -> ActiveWorkersResponse:
        path = f"/pool/active-workers/{currency}"
        return self._validate(ActiveWorkersResponse, await self.request(path, params), path)

    async def get_hashrate_efficiency(
        self, currency: str, params: dict[str, Any] | None = None
    ) -> HashrateEfficiencyResponse:
        path = f"/pool/hashrate-efficiency/{currency}"
        return self._validate(HashrateEfficiencyResponse, await self.request(path, params), path)

    async def get_revenue(
        self, currency: str, params: dict[str, Any] | None = None
    ) -> RevenueResponse:
        path = f"/pool/revenue/{currency}"
        return self._validate(RevenueResponse, await self.request(path, params), path)

    async def get_summary(
        self, currency: str, params: dict[str, Any] | None = None
    ) -> SummaryResponse:
        path = f"/pool/summary/{currency}"
        return self._validate(SummaryResponse, await self.request(path, params), path)

    async def create_group(
        self, body: dict[str, Any] | None = None, params: dict[str, Any] | None = None
    ) -> Group:
        payload = await self.request("/workspace/groups", params, "POST", body)
        return self._validate(Group, payload, "/workspace/groups")

    async def get_group(self, group_id: str, params: dict[str, Any] | None = None) -> Group:
        path = f"/workspace/groups/{group_id}"
        return self._validate(Group, await self.request(path, params), path)

    async def update_group(
        self,
        group_id: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Group:
        path = f"/workspace/groups/{group_id}"
        return self._validate(Group, await self.request(path, params, "PATCH", body), path)

    async def delete_group(
        self, group_id: str, params: dict[str, Any] | None = None
    ) -> WorkspaceAction:
        path = f"/workspace/groups/{group_id}"
        return self._validate(WorkspaceAction, await self.request(path, params, "DELETE"), path)

    async def list_group_subaccounts(
        self, group_id: str, params: dict[str, Any] | None = None
    ) -> GroupSubaccountList:
        path = f"/pool/groups/{group_id}/subaccounts"
        return self._validate(GroupSubaccountList, await self.request(path, params), path)

    async def get_group_subaccount(
        self,
        group_id: str,
        subaccount_name: str,
        params: dict[str, Any] | None = None,
    ) -> GroupSubaccount:
        path = f"/pool/groups/{group_id}/subaccounts/{subaccount_name}"
        return self._validate(GroupSubaccount, await self.request(path, params), path)

    async def add_group_subaccount(
        self,
        group_id: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> GroupSubaccount:
        path = f"/pool/groups/{group_id}/subaccounts"
        payload = await self.request(path, params, "POST", body)
        return self._validate(GroupSubaccount, payload, path)

    async def remove_group_subaccount(
        self,
        group_id: str,
        subaccount_name: str,
        params: dict[str, Any] | None = None,
    ) -> WorkspaceAction:
        path = f"/pool/groups/{group_id}/subaccounts/{subaccount_name}"
        payload = await self.request(path, params, "DELETE")
        return self._validate(WorkspaceAction, payload, path)

    def _headers(self) -> dict[str, str]:
        authorization = f"{self._auth_scheme} {self._api_key}".strip()
        headers = {"Authorization": authorization, "Accept": "application/json"}
        headers.update(propagation_headers(correlation_id_var.get()))
        return headers

    def _response_payload(self, response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            if response.status_code >= 400:
                return {"detail": response.text}
            raise UpstreamSchemaError(
                "Upstream returned a non-JSON payload", {"detail": response.text[:200]}
            ) from exc
        if isinstance(payload, dict):
            return payload
        if response.status_code >= 400:
            return {"detail": payload}
        raise UpstreamSchemaError(
            f"Upstream returned {type(payload).__name__} where an object was expected"
        )

    @staticmethod
    def _validate(model: type[ModelT], payload: dict[str, Any], path: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("pool API %s returned a malformed payload", path)
            raise UpstreamSchemaError(
                f"Malformed upstream payload from {path}",
                {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            ) from exc
