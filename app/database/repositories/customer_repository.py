"""
Customer Repository

Maps a user onto the provider-side customer, one row per user per provider.
"""

from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.customer import AsaasCustomer, StripeCustomer
from app.utils.enums import Provider

Customer = Union[StripeCustomer, AsaasCustomer]

_MODELS = {
    Provider.STRIPE: StripeCustomer,
    Provider.ASAAS: AsaasCustomer,
}


class CustomerRepository:
    """Both customer tables share the same shape, so one repository serves them."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_user(self, provider: str, user_id: int) -> Optional[Customer]:
        model = _MODELS[provider]
        result = await self.session.execute(select(model).where(model.user_id == user_id))
        return result.scalar_one_or_none()

    async def add(self, provider: str, user_id: int, external_id: str) -> Customer:
        if provider == Provider.STRIPE:
            customer = StripeCustomer(user_id=user_id, stripe_customer_id=external_id)
        else:
            customer = AsaasCustomer(user_id=user_id, asaas_customer_id=external_id)
        self.session.add(customer)
        await self.session.flush()
        return customer
