from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Interval = Literal["week", "month", "year"]


class PlanBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    price: Decimal = Field(..., gt=0)
    interval: Interval = "month"
    model_config = ConfigDict(from_attributes=True)


class PlanCreate(PlanBase):
    pass


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    features: Optional[List[str]] = None
    price: Optional[Decimal] = Field(None, gt=0)
    interval: Optional[Interval] = None
    active: Optional[bool] = None


class PlanResponse(PlanBase):
    id: int
    stripe_price_id: Optional[str] = None
    active: bool = True
    created_at: datetime
