"""
Subscription Repository

Queries over the canonical subscription and its provider-side cache rows.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.asaas_subscription import AsaasSubscription
from app.database.models.stripe_subscription import StripeSubscription
from app.database.models.subscription import Subscription
from app.database.repositories.repository import BaseRepository
from app.utils.enums import SubscriptionStatus


class SubscriptionRepository(BaseRepository[Subscription]):
    """
    Repository for Subscription model.

    "Latest" means highest id: ids grow with insertion order, timestamps may tie.

    Example:
        repo = SubscriptionRepository(session)
        current = await repo.get_open_for_user(user_id)
        if current is None:
            ...
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Subscription)

    async def get_open_for_user(self, user_id: int) -> Optional[Subscription]:
        """
        The user's PENDING/ACTIVE subscription, if any.

        Args:
            user_id: Local user id

        Returns:
            Subscription or None
        """
        result = await self.session.execute(
            select(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status.in_(SubscriptionStatus.OPEN),
            )
            .order_by(Subscription.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_latest_for_user(self, user_id: int) -> Optional[Subscription]:
        """Most recent subscription in any status."""
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def has_other_open(self, subscription: Subscription) -> bool:
        result = await self.session.execute(
            select(Subscription.id).where(
                Subscription.user_id == subscription.user_id,
                Subscription.id != subscription.id,
                Subscription.status.in_(SubscriptionStatus.OPEN),
            )
        )
        return result.first() is not None

    # ── Stripe cache rows ──

    async def get_stripe_by_checkout_session(self, session_id: str) -> Optional[StripeSubscription]:
        result = await self.session.execute(
            select(StripeSubscription).where(StripeSubscription.checkout_session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def get_stripe_by_subscription_id(self, stripe_subscription_id: str) -> Optional[StripeSubscription]:
        result = await self.session.execute(
            select(StripeSubscription).where(
                StripeSubscription.stripe_subscription_id == stripe_subscription_id
            )
        )
        return result.scalar_one_or_none()

    # ── Asaas cache rows ──

    async def get_asaas_by_subscription_id(self, asaas_subscription_id: str) -> Optional[AsaasSubscription]:
        result = await self.session.execute(
            select(AsaasSubscription).where(
                AsaasSubscription.asaas_subscription_id == asaas_subscription_id
            )
        )
        return result.scalar_one_or_none()

    async def get_asaas_for_user(self, asaas_subscription_id: str, user_id: int) -> Optional[AsaasSubscription]:
        """Asaas subscription by provider id, restricted to the owner."""
        result = await self.session.execute(
            select(AsaasSubscription)
            .join(Subscription, Subscription.id == AsaasSubscription.id)
            .where(
                AsaasSubscription.asaas_subscription_id == asaas_subscription_id,
                Subscription.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()
