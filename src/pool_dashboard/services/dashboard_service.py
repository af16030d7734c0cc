import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from pool_dashboard.auth.dependencies import CallerContext
from pool_dashboard.clients.proxy_client import ProxyClient
from pool_dashboard.config import settings
from pool_dashboard.contracts.dashboard import (
    CustomerCounts,
    DashboardResponse,
    DashboardSnapshot,
    FinancialSummary,
    MinerCounts,
    PoolAccountCounts,
    PoolMetrics,
    PowerSummary,
    SpaceCounts,
    TrendSummary,
    WorkerSummary,
)
from pool_dashboard.contracts.pool import (
    HashrateEfficiencyPoint,
    HashrateEfficiencyResponse,
    RevenueResponse,
    SummaryResponse,
    WorkersResponse,
    WorkerStatus,
    Workspace,
)
from pool_dashboard.db.repository import DashboardRepository
from pool_dashboard.enums import MinerStatus, PaymentType, SpaceStatus
from pool_dashboard.errors import Forbidden
from pool_dashboard.services.fetch_result import FetchResult, collect_warnings
from pool_dashboard.services.subaccount_resolver import SubaccountResolver

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

HASHES_PER_PETAHASH = 1e15
WORKERS_PAGE_SIZE = 1000
HISTORY_TICK_SIZE = "1d"
NO_SUBACCOUNTS_WARNING = "no subaccounts configured"


def hashes_to_petahashes(value: float) -> float:
    return value / HASHES_PER_PETAHASH


def fraction_to_percent(value: float) -> float:
    return value * 100


@dataclass
class MinerStats:
    by_status: dict[MinerStatus, int] = field(default_factory=dict)
    auto_power_usage: float = 0.0


@dataclass
class SpaceStats:
    by_status: dict[SpaceStatus, int] = field(default_factory=dict)
    power_capacity: float = 0.0


@dataclass
class CustomerStats:
    total: int = 0
    active: int = 0


@dataclass
class PaymentStats:
    customer_balance: float = 0.0
    monthly_revenue: float = 0.0


@dataclass
class LocalAggregates:
    miners: FetchResult[MinerStats]
    spaces: FetchResult[SpaceStats]
    customers: FetchResult[CustomerStats]
    payments: FetchResult[PaymentStats]


@dataclass
class PoolData:
    workers: FetchResult[WorkersResponse | None]
    workspace: FetchResult[Workspace | None]
    summary: FetchResult[SummaryResponse | None]
    history: FetchResult[HashrateEfficiencyResponse | None]
    revenue: FetchResult[RevenueResponse | None]

    @classmethod
    def empty(cls) -> "PoolData":
        missing = FetchResult.success(None)
        return cls(missing, missing, missing, missing, missing)


class DashboardService:
    def __init__(
        self,
        proxy_client: ProxyClient,
        resolver: SubaccountResolver,
        repository: DashboardRepository,
        currency: str = settings.pool_currency,
    ):
        self._proxy_client = proxy_client
        self._resolver = resolver
        self._repository = repository
        self._currency = currency

    async def get_dashboard(self, caller: CallerContext, correlation_id: str) -> DashboardResponse:
        if not caller.is_privileged:
            raise Forbidden("Administrator access required")

        resolution = await self._resolver.resolve(caller, correlation_id)
        warnings = list(resolution.warnings)
        names = resolution.names

        if names:
            gathered = await asyncio.gather(
                self._collect_local_aggregates(),
                self._collect_pool_data(caller, names, correlation_id),
                return_exceptions=True,
            )
        else:
            warnings.append(NO_SUBACCOUNTS_WARNING)
            gathered = await asyncio.gather(self._collect_local_aggregates(), return_exceptions=True)
            gathered.append(PoolData.empty())

        local = _settle_local(gathered[0])
        pool = _settle_pool(gathered[1])
        warnings.extend(
            collect_warnings(
                pool.workers,
                pool.workspace,
                pool.summary,
                pool.history,
                pool.revenue,
                local.miners,
                local.spaces,
                local.customers,
                local.payments,
            )
        )

        snapshot = build_snapshot(local, pool, names, warnings)
        return DashboardResponse(data=snapshot, timestamp=datetime.now(UTC).isoformat())

    async def _collect_pool_data(
        self, caller: CallerContext, names: list[str], correlation_id: str
    ) -> PoolData:
        today = datetime.now(UTC).date()
        scope = {"currency": self._currency, "subaccount_names": ",".join(names)}
        history_start = today - timedelta(days=settings.hashrate_window_days)

        requests: list[tuple[str, str, dict[str, Any], type[BaseModel]]] = [
            (
                "worker statistics",
                "workers",
                {**scope, "page_number": 1, "page_size": WORKERS_PAGE_SIZE},
                WorkersResponse,
            ),
            ("workspace", "workspace", {}, Workspace),
            ("pool summary", "summary", scope, SummaryResponse),
            (
                "hashrate history",
                "hashrate-history",
                {
                    **scope,
                    "start_date": history_start.isoformat(),
                    "end_date": today.isoformat(),
                    "tick_size": HISTORY_TICK_SIZE,
                },
                HashrateEfficiencyResponse,
            ),
            (
                "revenue",
                "revenue",
                {
                    **scope,
                    "start_date": settings.revenue_history_start.isoformat(),
                    "end_date": today.isoformat(),
                },
                RevenueResponse,
            ),
        ]
        results = await asyncio.gather(
            *(
                self._fetch(label, endpoint, params, model, caller, correlation_id)
                for label, endpoint, params, model in requests
            ),
            return_exceptions=True,
        )
        workers, workspace, summary, history, revenue = (
            _settle_fetch(label, endpoint, result)
            for (label, endpoint, _, _), result in zip(requests, results)
        )
        return PoolData(workers, workspace, summary, history, revenue)

    async def _fetch(
        self,
        label: str,
        endpoint: str,
        params: dict[str, Any],
        model: type[ModelT],
        caller: CallerContext,
        correlation_id: str,
    ) -> FetchResult[ModelT | None]:
        status_code, payload = await self._proxy_client.get(
            endpoint=endpoint,
            params=params,
            session_token=caller.session_token,
            correlation_id=correlation_id,
        )
        if status_code != 200 or not payload.get("success"):
            reason = payload.get("error") or payload.get("detail") or f"status {status_code}"
            logger.warning("%s fetch failed with %s: %s", endpoint, status_code, reason)
            return FetchResult.failure(f"{label} unavailable: {reason}", None)
        try:
            return FetchResult.success(model.model_validate(payload.get("data") or {}))
        except ValidationError:
            logger.warning("%s fetch returned a malformed payload", endpoint)
            return FetchResult.failure(f"{label} unavailable: malformed response", None)

    async def _collect_local_aggregates(self) -> LocalAggregates:
        # one session serves every query, so these run one after another
        miners = await self._load_local("miner counts", self._load_miner_stats, MinerStats())
        spaces = await self._load_local("space counts", self._load_space_stats, SpaceStats())
        customers = await self._load_local(
            "customer counts", self._load_customer_stats, CustomerStats()
        )
        payments = await self._load_local(
            "payment totals", self._load_payment_stats, PaymentStats()
        )
        return LocalAggregates(miners, spaces, customers, payments)

    async def _load_local(
        self, label: str, loader: Callable[[], Awaitable[Any]], fallback: Any
    ) -> FetchResult:
        try:
            return FetchResult.success(await loader())
        except SQLAlchemyError as exc:
            logger.warning("local %s query failed: %s", label, exc.__class__.__name__)
            await self._repository.rollback()
            return FetchResult.failure(f"{label} unavailable: database error", fallback)

    async def _load_miner_stats(self) -> MinerStats:
        return MinerStats(
            by_status=await self._repository.count_miners_by_status(),
            auto_power_usage=await self._repository.auto_miner_power_usage(),
        )

    async def _load_space_stats(self) -> SpaceStats:
        return SpaceStats(
            by_status=await self._repository.count_spaces_by_status(),
            power_capacity=await self._repository.total_space_power_capacity(),
        )

    async def _load_customer_stats(self) -> CustomerStats:
        return CustomerStats(
            total=await self._repository.count_customers(),
            active=await self._repository.count_active_customers(),
        )

    async def _load_payment_stats(self) -> PaymentStats:
        sign = settings.payment_amount_sign
        cutoff = datetime.now(UTC) - timedelta(days=settings.monthly_revenue_days)
        payment_types = [PaymentType(value) for value in settings.revenue_payment_types]
        return PaymentStats(
            customer_balance=sign * await self._repository.sum_customer_payments(),
            monthly_revenue=sign
            * await self._repository.sum_payments_since(cutoff, payment_types),
        )


def _settle_local(result: object) -> LocalAggregates:
    if isinstance(result, LocalAggregates):
        return result
    logger.error("local aggregation failed", exc_info=_exc_info(result))
    return LocalAggregates(
        FetchResult.failure("local statistics unavailable", MinerStats()),
        FetchResult.success(SpaceStats()),
        FetchResult.success(CustomerStats()),
        FetchResult.success(PaymentStats()),
    )


def _settle_pool(result: object) -> PoolData:
    if isinstance(result, PoolData):
        return result
    logger.error("pool aggregation failed", exc_info=_exc_info(result))
    failed = FetchResult.failure("pool statistics unavailable", None)
    missing = FetchResult.success(None)
    return PoolData(failed, missing, missing, missing, missing)


def _settle_fetch(label: str, endpoint: str, result: object) -> FetchResult:
    if isinstance(result, FetchResult):
        return result
    logger.error("%s fetch raised", endpoint, exc_info=_exc_info(result))
    return FetchResult.failure(f"{label} unavailable: {result.__class__.__name__}", None)


def _exc_info(result: object):
    if isinstance(result, BaseException):
        return (type(result), result, result.__traceback__)
    return None


def summarize_workers(workers: WorkersResponse | None) -> WorkerSummary:
    if workers is None:
        return WorkerSummary()
    active_hashrate = sum(w.hashrate for w in workers.workers if w.status == WorkerStatus.ACTIVE)
    inactive_hashrate = sum(
        w.hashrate for w in workers.workers if w.status == WorkerStatus.INACTIVE
    )
    return WorkerSummary(
        active_workers=workers.total_active,
        inactive_workers=workers.total_inactive,
        total_workers=workers.total_active + workers.total_inactive,
        active_hashrate=hashes_to_petahashes(active_hashrate),
        inactive_hashrate=hashes_to_petahashes(inactive_hashrate),
    )


def count_pool_accounts(
    workspace: Workspace | None, workers: WorkersResponse | None
) -> PoolAccountCounts:
    total = set()
    if workspace is not None:
        total = {sub.name for group in workspace.groups for sub in group.subaccounts}
    active = set()
    if workers is not None:
        active = {w.subaccount_name for w in workers.workers if w.status == WorkerStatus.ACTIVE}
    return PoolAccountCounts(
        total=len(total), active=len(active), inactive=max(len(total) - len(active), 0)
    )


def summarize_trend(
    points: list[HashrateEfficiencyPoint], attribute: str, convert: Callable[[float], float]
) -> TrendSummary:
    if not points:
        return TrendSummary()
    values = [float(getattr(point, attribute)) for point in points]
    return TrendSummary(current=convert(values[-1]), average=convert(sum(values) / len(values)))


def total_revenue(revenue: RevenueResponse | None) -> float:
    if revenue is None:
        return 0.0
    return sum(record.amount for record in revenue.revenue)


def build_snapshot(
    local: LocalAggregates, pool: PoolData, names: list[str], warnings: list[str]
) -> DashboardSnapshot:
    miners = local.miners.value
    spaces = local.spaces.value
    customers = local.customers.value
    payments = local.payments.value
    worker_summary = summarize_workers(pool.workers.value)

    auto_managed = miners.by_status.get(MinerStatus.AUTO, 0)
    # not clamped: local records may lag the pool
    action_required = (
        worker_summary.active_workers - auto_managed if pool.workers.value is not None else 0
    )

    summary = pool.summary.value
    points = pool.history.value.hashrate_efficiency if pool.history.value is not None else []

    return DashboardSnapshot(
        miners=MinerCounts(
            active=worker_summary.active_workers,
            inactive=miners.by_status.get(MinerStatus.DEPLOYMENT_IN_PROGRESS, 0),
            action_required=action_required,
            auto_managed=auto_managed,
        ),
        spaces=SpaceCounts(
            free=spaces.by_status.get(SpaceStatus.AVAILABLE, 0),
            used=spaces.by_status.get(SpaceStatus.OCCUPIED, 0),
        ),
        power=PowerSummary(
            total_power=miners.auto_power_usage,
            available_power=spaces.power_capacity,
        ),
        customers=CustomerCounts(
            total=customers.total,
            active=customers.active,
            inactive=max(customers.total - customers.active, 0),
        ),
        pool=PoolMetrics(
            pool_accounts=count_pool_accounts(pool.workspace.value, pool.workers.value),
            workers=worker_summary,
            hashrate_5m=hashes_to_petahashes(summary.hashrate_5m) if summary is not None else 0.0,
            hashrate_24h=hashes_to_petahashes(summary.hashrate_24h) if summary is not None else 0.0,
            uptime_24h=fraction_to_percent(summary.uptime_24h) if summary is not None else 0.0,
            hashrate=summarize_trend(points, "hashrate", hashes_to_petahashes),
            efficiency=summarize_trend(points, "efficiency", fraction_to_percent),
        ),
        financial=FinancialSummary(
            total_customer_balance=payments.customer_balance,
            monthly_revenue=payments.monthly_revenue,
            total_mined_revenue=total_revenue(pool.revenue.value),
        ),
        subaccounts=names,
        subaccount_count=len(names),
        warnings=warnings,
    )
