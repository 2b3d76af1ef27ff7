"""AsaasPayment model - one charge of an Asaas subscription."""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database.models.model_base import SqlAlchemyModel


class AsaasPayment(SqlAlchemyModel):
    __tablename__ = "asaas_payments"

    asaas_payment_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    subscription_id: Mapped[int] = mapped_column(
        ForeignKey("asaas_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Asaas subscription the charge was issued for (may differ from the
    # row's current one after a plan change)
    asaas_subscription_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    customer_id: Mapped[int] = mapped_column(
        ForeignKey("asaas_customers.id"),
        nullable=False,
        index=True,
    )

    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        default="PENDING",
    )  # PENDING, RECEIVED, CONFIRMED, OVERDUE, REFUNDED, ...
    billing_type: Mapped[str] = mapped_column(String(20), nullable=False, default="PIX")
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    invoice_url: Mapped[Optional[str]] = mapped_column(Text)
    pix_qr_code_url: Mapped[Optional[str]] = mapped_column(Text)
    pix_key: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<AsaasPayment {self.asaas_payment_id} status={self.status}>"
