"""Response shapes of the pool provider's REST API.

Every model allows extra fields so the proxy can pass upstream payloads
through untouched, while the fields this service computes with are
validated and coerced (hashrates arrive as strings or numbers in H/s).
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class _PoolModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Pagination(_PoolModel):
    page_number: int | None = None
    page_size: int | None = None
    item_count: int | None = None
    previous_page_url: str | None = None
    next_page_url: str | None = None


class SubaccountRef(_PoolModel):
    id: int | None = None
    name: str


class Site(_PoolModel):
    id: int | str
    name: str


class Subaccount(_PoolModel):
    id: int
    name: str
    site: Site | None = None
    created_at: datetime | None = None


class SubaccountPage(_PoolModel):
    subaccounts: list[Subaccount] = Field(default_factory=list)
    pagination: Pagination | None = None


class SubaccountListing(_PoolModel):
    """All subaccounts across every upstream page."""

    subaccounts: list[Subaccount] = Field(default_factory=list)
    total: int = 0


class WorkerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    UNSPECIFIED = "UNSPECIFIED"


class Worker(_PoolModel):
    id: int | str
    subaccount_name: str
    name: str
    hashrate: float = 0.0
    efficiency: float = 0.0
    status: WorkerStatus = WorkerStatus.UNSPECIFIED
    last_share_time: datetime | None = None


class WorkersResponse(_PoolModel):
    currency_type: str | None = None
    subaccounts: list[SubaccountRef] = Field(default_factory=list)
    total_active: int = 0
    total_inactive: int = 0
    workers: list[Worker] = Field(default_factory=list)
    pagination: Pagination | None = None


class ActiveWorkersPoint(_PoolModel):
    date_time: datetime
    active_workers: int = 0


class ActiveWorkersResponse(_PoolModel):
    currency_type: str | None = None
    subaccounts: list[SubaccountRef] = Field(default_factory=list)
    tick_size: str | None = None
    active_workers: list[ActiveWorkersPoint] = Field(default_factory=list)
    pagination: Pagination | None = None


class HashrateEfficiencyPoint(_PoolModel):
    date_time: datetime
    hashrate: float = 0.0
    efficiency: float = 0.0


class HashrateEfficiencyResponse(_PoolModel):
    currency_type: str | None = None
    subaccounts: list[SubaccountRef] = Field(default_factory=list)
    tick_size: str | None = None
    hashrate_efficiency: list[HashrateEfficiencyPoint] = Field(default_factory=list)
    pagination: Pagination | None = None


class RevenueAmount(_PoolModel):
    currency_type: str | None = None
    revenue_type: str | None = None
    revenue: float = 0.0


class RevenueRecord(_PoolModel):
    date_time: datetime
    revenue: float | RevenueAmount | None = None

    @property
    def amount(self) -> float:
        if self.revenue is None:
            return 0.0
        if isinstance(self.revenue, RevenueAmount):
            return self.revenue.revenue
        return self.revenue


class RevenueResponse(_PoolModel):
    currency_type: str | None = None
    subaccounts: list[SubaccountRef] = Field(default_factory=list)
    revenue: list[RevenueRecord] = Field(default_factory=list)
    pagination: Pagination | None = None


class HashpriceEntry(_PoolModel):
    currency_type: str | None = None
    value: float = 0.0


class SummaryResponse(_PoolModel):
    currency_type: str | None = None
    subaccounts: list[SubaccountRef] = Field(default_factory=list)
    hashrate_5m: float = 0.0
    hashrate_24h: float = 0.0
    uptime_24h: float = 0.0
    hashprice: list[HashpriceEntry] = Field(default_factory=list)


class GroupSubaccount(_PoolModel):
    id: int | None = None
    name: str
    created_at: datetime | None = None
    url: str | None = None


class GroupSubaccountList(_PoolModel):
    subaccounts: list[GroupSubaccount] = Field(default_factory=list)


class Group(_PoolModel):
    id: str
    name: str
    type: str | None = None
    url: str | None = None
    members: list[dict] = Field(default_factory=list)
    subaccounts: list[GroupSubaccount] = Field(default_factory=list)


class Workspace(_PoolModel):
    id: str
    name: str
    groups: list[Group] = Field(default_factory=list)


class WorkspaceAction(_PoolModel):
    """Returned by deletions that may need approval inside the pool workspace."""

    id: str
    status: str | None = None
    requires_approval: bool | None = Field(default=None, alias="requiresApproval")
    url: str | None = None
