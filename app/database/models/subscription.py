"""Subscription model - canonical, provider-agnostic billing record."""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.models.model_base import SqlAlchemyModel

if TYPE_CHECKING:
    from app.database.models.asaas_subscription import AsaasSubscription
    from app.database.models.plan import Plan
    from app.database.models.stripe_subscription import StripeSubscription

_OPEN_STATUSES = text("status IN ('PENDING', 'ACTIVE')")


class Subscription(SqlAlchemyModel):
    __tablename__ = "subscriptions"
    __table_args__ = (
        # at most one PENDING/ACTIVE subscription per user
        Index(
            "uq_subscriptions_user_open",
            "user_id",
            unique=True,
            postgresql_where=_OPEN_STATUSES,
            sqlite_where=_OPEN_STATUSES,
        ),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("plans.id"),
        nullable=False,
        index=True,
    )

    provider: Mapped[str] = mapped_column(String(10), nullable=False)  # STRIPE, ASAAS
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="PENDING",
    )  # PENDING, ACTIVE, CANCELLED
    price_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    interval: Mapped[str] = mapped_column(String(10), nullable=False, default="month")

    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    plan: Mapped["Plan"] = relationship(lazy="selectin")
    stripe_subscription: Mapped[Optional["StripeSubscription"]] = relationship(
        back_populates="subscription",
        uselist=False,
        lazy="selectin",
    )
    asaas_subscription: Mapped[Optional["AsaasSubscription"]] = relationship(
        back_populates="subscription",
        uselist=False,
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} user_id={self.user_id} {self.provider} status={self.status}>"
