"""AsaasSubscription model - last synced view of an Asaas PIX subscription."""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.models.model_base import SqlAlchemyModel
from app.payments.base import ConfirmedRef

if TYPE_CHECKING:
    from app.database.models.subscription import Subscription


class AsaasSubscription(SqlAlchemyModel):
    __tablename__ = "asaas_subscriptions"

    # shares its id with the canonical subscription
    id: Mapped[int] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("asaas_customers.id"),
        nullable=False,
        index=True,
    )

    # replaced in place when a plan change or reactivation opens a new Asaas subscription
    asaas_subscription_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cycle: Mapped[str] = mapped_column(String(10), nullable=False)  # week, month, year
    next_due_date: Mapped[Optional[date]] = mapped_column(Date)

    subscription: Mapped["Subscription"] = relationship(back_populates="asaas_subscription", lazy="selectin")

    @property
    def provider_ref(self) -> ConfirmedRef:
        return ConfirmedRef(self.asaas_subscription_id)

    def __repr__(self) -> str:
        return f"<AsaasSubscription id={self.id} {self.asaas_subscription_id} status={self.status}>"
