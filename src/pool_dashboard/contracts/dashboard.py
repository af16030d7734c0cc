from pydantic import BaseModel, Field


class MinerCounts(BaseModel):
    active: int = 0
    inactive: int = 0
    # pool-reported active workers minus local auto-managed miners; may be negative
    action_required: int = 0
    auto_managed: int = 0


class SpaceCounts(BaseModel):
    free: int = 0
    used: int = 0


class PowerSummary(BaseModel):
    total_power: float = 0.0
    available_power: float = 0.0


class CustomerCounts(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0


class PoolAccountCounts(BaseModel):
    total: int = 0
    active: int = 0
    inactive: int = 0


class WorkerSummary(BaseModel):
    active_workers: int = 0
    inactive_workers: int = 0
    total_workers: int = 0
    active_hashrate: float = Field(default=0.0, description="PH/s")
    inactive_hashrate: float = Field(default=0.0, description="PH/s")


class TrendSummary(BaseModel):
    current: float = 0.0
    average: float = 0.0


class PoolMetrics(BaseModel):
    pool_accounts: PoolAccountCounts = Field(default_factory=PoolAccountCounts)
    workers: WorkerSummary = Field(default_factory=WorkerSummary)
    hashrate_5m: float = Field(default=0.0, description="PH/s")
    hashrate_24h: float = Field(default=0.0, description="PH/s")
    uptime_24h: float = Field(default=0.0, description="percent")
    hashrate: TrendSummary = Field(default_factory=TrendSummary, description="PH/s")
    efficiency: TrendSummary = Field(default_factory=TrendSummary, description="percent")


class FinancialSummary(BaseModel):
    total_customer_balance: float = 0.0
    monthly_revenue: float = 0.0
    total_mined_revenue: float = 0.0


class DashboardSnapshot(BaseModel):
    miners: MinerCounts = Field(default_factory=MinerCounts)
    spaces: SpaceCounts = Field(default_factory=SpaceCounts)
    power: PowerSummary = Field(default_factory=PowerSummary)
    customers: CustomerCounts = Field(default_factory=CustomerCounts)
    pool: PoolMetrics = Field(default_factory=PoolMetrics)
    financial: FinancialSummary = Field(default_factory=FinancialSummary)
    subaccounts: list[str] = Field(default_factory=list)
    subaccount_count: int = 0
    warnings: list[str] = Field(default_factory=list)


class DashboardResponse(BaseModel):
    success: bool = True
    data: DashboardSnapshot
    timestamp: str
