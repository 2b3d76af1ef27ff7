"""Provider customer models - one per user per provider, created lazily."""

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database.models.model_base import SqlAlchemyModel


class StripeCustomer(SqlAlchemyModel):
    __tablename__ = "stripe_customers"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    stripe_customer_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    @property
    def external_id(self) -> str:
        return self.stripe_customer_id

    def __repr__(self) -> str:
        return f"<StripeCustomer user_id={self.user_id} {self.stripe_customer_id}>"


class AsaasCustomer(SqlAlchemyModel):
    __tablename__ = "asaas_customers"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    asaas_customer_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    @property
    def external_id(self) -> str:
        return self.asaas_customer_id

    def __repr__(self) -> str:
        return f"<AsaasCustomer user_id={self.user_id} {self.asaas_customer_id}>"
