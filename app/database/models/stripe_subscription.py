"""StripeSubscription model - last synced view of a Stripe subscription."""

from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.models.model_base import SqlAlchemyModel
from app.payments.base import ConfirmedRef, PendingRef

if TYPE_CHECKING:
    from app.database.models.subscription import Subscription


class StripeSubscription(SqlAlchemyModel):
    __tablename__ = "stripe_subscriptions"

    # shares its id with the canonical subscription
    id: Mapped[int] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("stripe_customers.id"),
        nullable=False,
        index=True,
    )

    checkout_session_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    checkout_url: Mapped[Optional[str]] = mapped_column(Text)
    # null until checkout.session.completed tells us the real id
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    subscription: Mapped["Subscription"] = relationship(back_populates="stripe_subscription", lazy="selectin")

    @property
    def provider_ref(self) -> Union[PendingRef, ConfirmedRef]:
        if self.stripe_subscription_id:
            return ConfirmedRef(self.stripe_subscription_id)
        return PendingRef(self.checkout_session_id)

    def __repr__(self) -> str:
        return f"<StripeSubscription id={self.id} ref={self.provider_ref} status={self.status}>"
