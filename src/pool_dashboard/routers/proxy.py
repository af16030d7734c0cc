import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from pool_dashboard.auth.dependencies import CallerContext, get_caller_context
from pool_dashboard.clients.pool_client import PoolApiClient, PoolApiError
from pool_dashboard.config import settings
from pool_dashboard.errors import ConfigurationError, DashboardError, ValidationFailed
from pool_dashboard.routers.envelope import error_response
from pool_dashboard.services.proxy_service import ProxyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/proxy", tags=["proxy"])


def _proxy_service() -> ProxyService:
    if not settings.pool_api_key:
        logger.error("pool API key is not configured")
        raise ConfigurationError("Service configuration error")
    return ProxyService(
        pool_client=PoolApiClient(
            base_url=settings.pool_api_base_url,
            api_key=settings.pool_api_key,
            timeout_seconds=settings.pool_api_timeout_seconds,
            auth_scheme=settings.pool_api_auth_scheme,
        ),
        subaccount_page_size=settings.subaccount_page_size,
        subaccount_max_pages=settings.subaccount_max_pages,
    )


async def _forward(
    caller: CallerContext,
    endpoint: str | None,
    method: str,
    params: dict[str, Any],
) -> JSONResponse:
    try:
        envelope = await _proxy_service().forward(
            caller=caller, endpoint_name=endpoint, method=method, params=params
        )
    except DashboardError:
        raise
    except PoolApiError as exc:
        return error_response(exc.status_code, exc.message)
    except Exception:
        logger.exception("proxy %s for endpoint %s failed", method, endpoint)
        return error_response(500, "Internal server error")
    return JSONResponse(status_code=200, content=envelope.model_dump(exclude_none=True))


@router.get(
    "",
    summary="Proxy a read to the pool provider",
    description=(
        "Forwards an allow-listed logical endpoint to the pool provider. "
        "Tenants are always scoped to their own subaccount."
    ),
)
async def proxy_get(
    request: Request,
    endpoint: str | None = Query(default=None),
    caller: CallerContext = Depends(get_caller_context),
) -> JSONResponse:
    params = {key: value for key, value in request.query_params.items() if key != "endpoint"}
    return await _forward(caller, endpoint, "GET", params)


@router.api_route(
    "",
    methods=["POST", "PUT", "PATCH", "DELETE"],
    summary="Proxy a mutation to the pool provider",
    description="Group management endpoints. The JSON body carries the endpoint name.",
)
async def proxy_mutate(
    request: Request,
    caller: CallerContext = Depends(get_caller_context),
) -> JSONResponse:
    body: Any = {}
    if await request.body():
        try:
            body = await request.json()
        except ValueError:
            raise ValidationFailed("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationFailed("Request body must be a JSON object")

    params: dict[str, Any] = dict(request.query_params)
    params.update(body)
    endpoint = params.pop("endpoint", None)
    return await _forward(caller, endpoint, request.method, params)
