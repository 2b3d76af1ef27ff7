"""
Plan Repository

Catalog lookups used by the plans router and the subscription lifecycle.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.database.models.plan import Plan
from app.database.repositories.repository import BaseRepository


class PlanRepository(BaseRepository[Plan]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Plan)

    async def get_active(self, plan_id: int) -> Plan:
        """Plan that can be subscribed to, or NotFoundError."""
        plan = await self.get_by_id(plan_id)
        if plan is None or not plan.active:
            raise NotFoundError("Plano não encontrado")
        return plan

    async def list_active(self) -> List[Plan]:
        result = await self.session.execute(
            select(Plan).where(Plan.active.is_(True)).order_by(Plan.price.asc(), Plan.id.asc())
        )
        return list(result.scalars().all())
