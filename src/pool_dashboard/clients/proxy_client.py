from typing import Any

import httpx

from pool_dashboard.clients.http_resilience import request_with_retry
from pool_dashboard.middleware.correlation import propagation_headers

PROXY_PATH = "/api/v1/proxy"
RETRY_STATUS_CODES = {429, 502, 503, 504}


class ProxyClient:
    """Calls this service's own proxy endpoint on behalf of an authenticated caller.

    The caller's session token travels as the session cookie so the proxy
    applies the same authentication and scoping it applies to browser calls.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float,
        session_cookie_name: str = "token",
        max_retries: int = 0,
        retry_backoff_seconds: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._cookie_name = session_cookie_name
        self._max_retries = max_retries
        self._retry_backoff_seconds = retry_backoff_seconds
        self._transport = transport

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any],
        session_token: str,
        correlation_id: str,
    ) -> tuple[int, dict[str, Any]]:
        query = {key: value for key, value in params.items() if value is not None}
        query["endpoint"] = endpoint
        return await request_with_retry(
            method="GET",
            url=f"{self._base_url}{PROXY_PATH}",
            timeout_seconds=self._timeout,
            max_retries=self._max_retries,
            backoff_seconds=self._retry_backoff_seconds,
            retry_status_codes=RETRY_STATUS_CODES,
            params=query,
            headers=self._headers(session_token, correlation_id),
            transport=self._transport,
        )

    def _headers(self, session_token: str, correlation_id: str) -> dict[str, str]:
        headers = propagation_headers(correlation_id)
        headers["Cookie"] = f"{self._cookie_name}={session_token}"
        return headers
