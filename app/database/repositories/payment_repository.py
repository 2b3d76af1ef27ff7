"""
Payment Repository

Local copies of Asaas charges. Rows are upserted by provider payment id and
never deleted.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.asaas_subscription import AsaasSubscription
from app.database.models.customer import AsaasCustomer
from app.database.models.payment import AsaasPayment
from app.database.repositories.repository import BaseRepository
from app.payments.base import PaymentSnapshot


class PaymentRepository(BaseRepository[AsaasPayment]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, AsaasPayment)

    async def get_by_asaas_id(self, asaas_payment_id: str) -> Optional[AsaasPayment]:
        result = await self.session.execute(
            select(AsaasPayment).where(AsaasPayment.asaas_payment_id == asaas_payment_id)
        )
        return result.scalar_one_or_none()

    async def get_for_user(self, asaas_payment_id: str, user_id: int) -> Optional[AsaasPayment]:
        """Payment by provider id, restricted to the owner's customer."""
        result = await self.session.execute(
            select(AsaasPayment)
            .join(AsaasCustomer, AsaasCustomer.id == AsaasPayment.customer_id)
            .where(
                AsaasPayment.asaas_payment_id == asaas_payment_id,
                AsaasCustomer.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_for_subscription(self, subscription_id: int, newest_first: bool = True) -> List[AsaasPayment]:
        order = AsaasPayment.due_date.desc() if newest_first else AsaasPayment.due_date.asc()
        result = await self.session.execute(
            select(AsaasPayment)
            .where(AsaasPayment.subscription_id == subscription_id)
            .order_by(order, AsaasPayment.id.desc() if newest_first else AsaasPayment.id.asc())
        )
        return list(result.scalars().all())

    async def get_latest(self, subscription_id: int) -> Optional[AsaasPayment]:
        payments = await self.list_for_subscription(subscription_id)
        return payments[0] if payments else None

    async def get_first_of(self, asaas_subscription_id: str) -> Optional[AsaasPayment]:
        """Earliest due charge issued for one Asaas subscription."""
        result = await self.session.execute(
            select(AsaasPayment)
            .where(AsaasPayment.asaas_subscription_id == asaas_subscription_id)
            .order_by(AsaasPayment.due_date.asc(), AsaasPayment.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def save_snapshot(self, owner: AsaasSubscription, snapshot: PaymentSnapshot) -> AsaasPayment:
        """
        Insert or update the local copy of a provider charge.

        Args:
            owner: Local Asaas subscription row the charge belongs to
            snapshot: Charge as reported by Asaas

        Returns:
            The persisted payment
        """
        payment = await self.get_by_asaas_id(snapshot.external_id)
        if payment is None:
            payment = AsaasPayment(
                asaas_payment_id=snapshot.external_id,
                subscription_id=owner.id,
                asaas_subscription_id=snapshot.subscription_id or owner.asaas_subscription_id,
                customer_id=owner.customer_id,
            )
            self.session.add(payment)

        payment.value = snapshot.value
        payment.status = snapshot.status
        payment.billing_type = snapshot.billing_type
        payment.due_date = snapshot.due_date
        if snapshot.invoice_url:
            payment.invoice_url = snapshot.invoice_url
        if snapshot.pix is not None:
            payment.pix_qr_code_url = snapshot.pix.encoded_image
            payment.pix_key = snapshot.pix.payload

        await self.session.flush()
        return payment
