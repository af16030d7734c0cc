from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pool_dashboard.auth.dependencies import CallerContext, get_caller_context
from pool_dashboard.clients.proxy_client import ProxyClient
from pool_dashboard.config import settings
from pool_dashboard.contracts.dashboard import DashboardResponse
from pool_dashboard.db.database import get_db_session
from pool_dashboard.db.repository import DashboardRepository, UserRepository
from pool_dashboard.middleware.correlation import correlation_id_var
from pool_dashboard.services.dashboard_service import DashboardService
from pool_dashboard.services.subaccount_resolver import SubaccountResolver

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


def _proxy_client() -> ProxyClient:
    return ProxyClient(
        base_url=settings.internal_base_url,
        timeout_seconds=settings.loopback_timeout_seconds,
        session_cookie_name=settings.session_cookie_name,
        max_retries=settings.loopback_max_retries,
        retry_backoff_seconds=settings.loopback_retry_backoff_seconds,
    )


def _dashboard_service(db: AsyncSession) -> DashboardService:
    proxy_client = _proxy_client()
    return DashboardService(
        proxy_client=proxy_client,
        resolver=SubaccountResolver(proxy_client=proxy_client, user_repository=UserRepository(db)),
        repository=DashboardRepository(db),
        currency=settings.pool_currency,
    )


@router.get(
    "",
    response_model=DashboardResponse,
    summary="Get Admin Dashboard Snapshot",
    description=(
        "Combines pool worker, hashrate, uptime and revenue statistics with local "
        "miner, space, customer and payment aggregates. Upstream failures degrade "
        "to zeroed metrics plus warnings instead of failing the request."
    ),
)
async def get_dashboard(
    caller: CallerContext = Depends(get_caller_context),
    db: AsyncSession = Depends(get_db_session),
) -> DashboardResponse:
    service = _dashboard_service(db)
    correlation_id = correlation_id_var.get()
    return await service.get_dashboard(caller=caller, correlation_id=correlation_id)
