"""
Plans Router - public catalog and admin maintenance.

Endpoints:
- GET  /plans            - Active plans ordered by price (public)
- POST /plans            - Create a plan and its Stripe recurring price (admin)
- PUT  /plans/{plan_id}  - Partial update (admin); never touches Stripe
"""

import asyncio
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas.plan import PlanCreate, PlanResponse, PlanUpdate
from app.core.auth import UserInfo, get_current_admin
from app.core.exceptions import NotFoundError, ProviderError
from app.database.models.plan import Plan
from app.database.repositories.plan_repository import PlanRepository
from app.database.session import get_db
from app.payments import get_billing_providers
from app.payments.base import BillingProvider
from app.utils.enums import Provider

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[PlanResponse])
async def list_plans(db: AsyncSession = Depends(get_db)):
    plans = await PlanRepository(db).list_active()
    return [PlanResponse.model_validate(p) for p in plans]


@router.post("", response_model=PlanResponse, status_code=201)
async def create_plan(
    data: PlanCreate,
    admin: UserInfo = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    providers: Dict[str, BillingProvider] = Depends(get_billing_providers),
):
    """Create the Stripe price first; the plan is only stored once Stripe accepted it."""
    stripe_billing = providers.get(Provider.STRIPE)
    if stripe_billing is None:
        raise ProviderError(provider=Provider.STRIPE, detail="STRIPE_SECRET_KEY not configured")

    price_id = await asyncio.to_thread(
        stripe_billing.create_price,
        data.name,
        data.price,
        data.interval,
        {"description": data.description or ""},
    )
    plan = await PlanRepository(db).add(
        Plan(
            name=data.name,
            description=data.description,
            features=data.features,
            price=data.price,
            interval=data.interval,
            stripe_price_id=price_id,
            active=True,
        )
    )
    logger.info(f"Plan {plan.id} created by {admin.email}: {plan.name} ({price_id})")
    return PlanResponse.model_validate(plan)


@router.put("/{plan_id}", response_model=PlanResponse)
async def update_plan(
    data: PlanUpdate,
    plan_id: int = Path(...),
    admin: UserInfo = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    repository = PlanRepository(db)
    plan = await repository.get_by_id(plan_id)
    if plan is None:
        raise NotFoundError("Plano não encontrado")

    plan = await repository.update(plan, **data.model_dump(exclude_unset=True))
    logger.info(f"Plan {plan.id} updated by {admin.email}")
    return PlanResponse.model_validate(plan)
