"""Plan model - catalog entry a subscription is priced from."""

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database.models.model_base import SqlAlchemyModel


class Plan(SqlAlchemyModel):
    __tablename__ = "plans"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    features: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    interval: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="month",
    )  # week, month, year

    stripe_price_id: Mapped[Optional[str]] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Plan id={self.id} name={self.name} price={self.price}>"
