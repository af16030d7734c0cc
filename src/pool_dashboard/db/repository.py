"""Read-only aggregate queries over the hosting database.

Every sum and count defaults to 0 when no rows match.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pool_dashboard.db.models import MinerModel, PaymentModel, SpaceModel, UserModel
from pool_dashboard.enums import MinerStatus, PaymentType, Role, SpaceStatus


class _Repository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def rollback(self) -> None:
        await self._session.rollback()


class UserRepository(_Repository):
    async def get_user_by_id(self, user_id: str) -> UserModel | None:
        return await self._session.get(UserModel, user_id)

    async def list_external_subaccount_names(self) -> list[str]:
        """Distinct pool subaccount names recorded against local users."""
        column = UserModel.external_subaccount_name
        stmt = select(column).where(column.is_not(None), column != "").distinct().order_by(column)
        result = await self._session.execute(stmt)
        return [name for name in result.scalars().all() if name and name.strip()]


class DashboardRepository(_Repository):
    async def count_miners_by_status(self) -> dict[MinerStatus, int]:
        stmt = select(MinerModel.status, func.count(MinerModel.id)).group_by(MinerModel.status)
        rows = (await self._session.execute(stmt)).all()
        counts = {status: 0 for status in MinerStatus}
        for status, count in rows:
            counts[MinerStatus(status)] = int(count)
        return counts

    async def count_spaces_by_status(self) -> dict[SpaceStatus, int]:
        stmt = select(SpaceModel.status, func.count(SpaceModel.id)).group_by(SpaceModel.status)
        rows = (await self._session.execute(stmt)).all()
        counts = {status: 0 for status in SpaceStatus}
        for status, count in rows:
            counts[SpaceStatus(status)] = int(count)
        return counts

    async def total_space_power_capacity(self) -> float:
        stmt = select(func.coalesce(func.sum(SpaceModel.power_capacity), 0))
        return float(await self._session.scalar(stmt) or 0)

    async def auto_miner_power_usage(self) -> float:
        stmt = select(func.coalesce(func.sum(MinerModel.power_usage), 0)).where(
            MinerModel.status == MinerStatus.AUTO
        )
        return float(await self._session.scalar(stmt) or 0)

    async def count_customers(self) -> int:
        stmt = select(func.count(UserModel.id)).where(UserModel.role == Role.CLIENT)
        return int(await self._session.scalar(stmt) or 0)

    async def count_active_customers(self) -> int:
        """Customers owning at least one pool-managed miner."""
        stmt = (
            select(func.count(func.distinct(UserModel.id)))
            .join(MinerModel, MinerModel.user_id == UserModel.id)
            .where(UserModel.role == Role.CLIENT, MinerModel.status == MinerStatus.AUTO)
        )
        return int(await self._session.scalar(stmt) or 0)

    async def sum_customer_payments(self) -> float:
        stmt = (
            select(func.coalesce(func.sum(PaymentModel.amount), 0))
            .join(UserModel, UserModel.id == PaymentModel.user_id)
            .where(UserModel.role == Role.CLIENT)
        )
        return float(await self._session.scalar(stmt) or 0)

    async def sum_payments_since(
        self, cutoff: datetime, payment_types: list[PaymentType]
    ) -> float:
        if not payment_types:
            return 0.0
        stmt = select(func.coalesce(func.sum(PaymentModel.amount), 0)).where(
            PaymentModel.created_at >= cutoff,
            PaymentModel.type.in_(payment_types),
        )
        return float(await self._session.scalar(stmt) or 0)
