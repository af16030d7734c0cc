import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


def response_payload(response: httpx.Response) -> dict[str, Any]:
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        payload = {"detail": response.text}
    if isinstance(payload, dict):
        return payload
    return {"detail": payload}


async def request_with_retry(
    *,
    method: str,
    url: str,
    timeout_seconds: float,
    max_retries: int = 0,
    backoff_seconds: float = 0.2,
    retry_status_codes: set[int] | None = None,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    json_body: dict[str, Any] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[int, dict[str, Any]]:
    attempts = max_retries + 1
    for attempt in range(attempts):
        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=transport) as client:
                response = await client.request(
                    method.upper(),
                    url,
                    params=params,
                    headers=headers,
                    json=json_body,
                )

            should_retry_status = retry_status_codes and response.status_code in retry_status_codes
            if should_retry_status and attempt < max_retries:
                logger.warning(
                    "retrying %s %s after status %s (attempt %s)",
                    method.upper(),
                    url,
                    response.status_code,
                    attempt + 1,
                )
                await asyncio.sleep(backoff_seconds * (2**attempt))
                continue
            return response.status_code, response_payload(response)
        except httpx.TransportError as exc:
            if attempt >= max_retries:
                logger.warning("%s %s failed: %s", method.upper(), url, exc.__class__.__name__)
                return 503, {"detail": f"upstream communication failure: {exc.__class__.__name__}"}
            await asyncio.sleep(backoff_seconds * (2**attempt))

    return 503, {"detail": "upstream communication failure: exhausted retries"}
