"""
Tests for user_scope (per-user serialization of billing writes).
"""

import asyncio
from decimal import Decimal

import pytest

from app.core.exceptions import ConflictError, NotFoundError
from app.core.locks import held_locks, user_scope
from app.database.models import Subscription, User
from app.database.session import AsyncSessionLocal


def _pending(user_id, plan_id):
    return Subscription(
        user_id=user_id,
        plan_id=plan_id,
        provider="ASAAS",
        status="PENDING",
        price_amount=Decimal("10.00"),
        interval="month",
    )


class TestUserScope:

    def test_flows_of_same_user_do_not_interleave(self, user):
        events = []

        async def flow(tag):
            async with AsyncSessionLocal() as db:
                async with user_scope(db, user.id):
                    events.append(("in", tag))
                    await asyncio.sleep(0.05)
                    events.append(("out", tag))

        async def main():
            await asyncio.gather(flow("a"), flow("b"))

        asyncio.run(main())

        assert [kind for kind, _ in events] == ["in", "out", "in", "out"]
        assert events[0][1] == events[1][1]
        assert held_locks() == 0

    def test_commits_on_exit(self, user, load):
        async def main():
            async with AsyncSessionLocal() as db:
                async with user_scope(db, user.id) as locked:
                    locked.name = "Ana Maria"

        asyncio.run(main())
        assert load(User)[0].name == "Ana Maria"

    def test_rolls_back_on_error(self, user, load):
        async def main():
            async with AsyncSessionLocal() as db:
                async with user_scope(db, user.id) as locked:
                    locked.name = "Nunca salvo"
                    await db.flush()
                    raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(main())
        assert load(User)[0].name == "Ana Souza"
        assert held_locks() == 0

    def test_second_open_subscription_is_conflict(self, user, plans, load):
        async def main():
            async with AsyncSessionLocal() as db:
                async with user_scope(db, user.id):
                    db.add(_pending(user.id, plans.basic.id))
                    await db.flush()
                    db.add(_pending(user.id, plans.pro.id))
                    await db.flush()

        with pytest.raises(ConflictError):
            asyncio.run(main())
        assert load(Subscription) == []
        assert held_locks() == 0

    def test_unknown_user(self, test_db_engine):
        async def main():
            async with AsyncSessionLocal() as db:
                async with user_scope(db, 999):
                    pass

        with pytest.raises(NotFoundError):
            asyncio.run(main())
        assert held_locks() == 0
