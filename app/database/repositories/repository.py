"""
Repository Pattern Base Classes

Provides the database abstraction layer for the billing core.

- BaseRepository: generic async CRUD for any model
- Specialized repositories: domain queries (SubscriptionRepository, PaymentRepository, ...)

Repositories never commit. The transaction belongs to the request (`get_db`)
or to the per-user scope (`user_scope`), which commit once at the end so
multi-entity writes land together or not at all.
"""

from abc import ABC
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.model_base import SqlAlchemyModel

ModelType = TypeVar("ModelType", bound=SqlAlchemyModel)


class BaseRepository(Generic[ModelType], ABC):
    """
    Abstract base repository with common CRUD operations.

    Type Parameters:
        ModelType: The SQLAlchemy model class (Plan, Subscription, etc.)

    Example:
        class PlanRepository(BaseRepository[Plan]):
            def __init__(self, session: AsyncSession):
                super().__init__(session, Plan)
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        Initialize repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class
        """
        self.session = session
        self.model = model

    async def get_by_id(self, id: Any) -> Optional[ModelType]:
        """
        Retrieve a single record by ID.

        Args:
            id: Primary key value

        Returns:
            Model instance or None if not found
        """
        return await self.session.get(self.model, id)

    async def add(self, instance: ModelType) -> ModelType:
        """
        Stage a new record and flush it so generated keys are available.

        Args:
            instance: Model instance to persist

        Returns:
            The same instance, with its primary key populated
        """
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def update(self, instance: ModelType, **kwargs) -> ModelType:
        """
        Update columns of a loaded record.

        Args:
            instance: Model instance to change
            **kwargs: Column values to update

        Returns:
            Updated model instance
        """
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        return instance
