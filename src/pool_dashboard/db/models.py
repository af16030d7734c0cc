"""SQLAlchemy mappings for the tables the dashboard reads.

The schema is owned and migrated elsewhere; these classes only map the
columns this service aggregates over.
"""

from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from pool_dashboard.db.database import Base
from pool_dashboard.enums import MinerStatus, PaymentType, Role, SpaceStatus


class UserModel(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), nullable=False, default=Role.CLIENT)
    external_subaccount_name: Mapped[str | None] = mapped_column(
        "luxor_subaccount_name", String(255), nullable=True
    )


class SpaceModel(Base):
    __tablename__ = "spaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[SpaceStatus] = mapped_column(
        Enum(SpaceStatus, name="space_status"), nullable=False, default=SpaceStatus.AVAILABLE
    )
    power_capacity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class MinerModel(Base):
    __tablename__ = "miners"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[MinerStatus] = mapped_column(
        Enum(MinerStatus, name="miner_status"),
        nullable=False,
        default=MinerStatus.DEPLOYMENT_IN_PROGRESS,
    )
    power_usage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    space_id: Mapped[str | None] = mapped_column(ForeignKey("spaces.id"), nullable=True)


class PaymentModel(Base):
    __tablename__ = "cost_payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    type: Mapped[PaymentType] = mapped_column(
        Enum(PaymentType, name="payment_type"), nullable=False, default=PaymentType.PAYMENT
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
