"""
Alembic Environment Configuration

Runs migrations against DATABASE_URL (the same sync URL the API derives its
async engine from), with the billing models as autogenerate target.
"""

from logging.config import fileConfig
from sqlalchemy import create_engine, pool
from alembic import context
from dotenv import load_dotenv
import sys
import os

# Load .env from project root so DATABASE_URL is set (same as API)
project_root = os.path.dirname(os.path.dirname(__file__))
load_dotenv(os.path.join(project_root, ".env"))

# Add parent directory to path to import our models
sys.path.insert(0, project_root)

# Importing the package registers every model with Base
from app.database.session import Base
import app.database.models  # noqa: F401

config = context.config


def get_url():
    """Migration URL: env DATABASE_URL overrides alembic.ini."""
    return os.environ.get("DATABASE_URL") or config.get_main_option("sqlalchemy.url")


if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to the script output without connecting."""
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
