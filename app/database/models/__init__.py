"""Database models package - import all models so Alembic can discover them."""

from app.database.models.model_base import SqlAlchemyModel
from app.database.models.user import User
from app.database.models.plan import Plan
from app.database.models.customer import AsaasCustomer, StripeCustomer
from app.database.models.subscription import Subscription
from app.database.models.stripe_subscription import StripeSubscription
from app.database.models.asaas_subscription import AsaasSubscription
from app.database.models.payment import AsaasPayment
from app.database.models.job import Job, JobArea, JobFavorite, JobView, Search

__all__ = [
    "SqlAlchemyModel",
    "User",
    "Plan",
    "StripeCustomer",
    "AsaasCustomer",
    "Subscription",
    "StripeSubscription",
    "AsaasSubscription",
    "AsaasPayment",
    "Search",
    "Job",
    "JobFavorite",
    "JobView",
    "JobArea",
]
