"""Jobs schema - searches, jobs, favorite/viewed marks and job areas

Revision ID: 002_jobs
Revises: 001_billing
Create Date: 2026-10-19

Tables:
- searches (id assigned by the search service)
- jobs (found by a search)
- job_favorites / job_views (one per job per user)
- job_areas (suggestion catalog)
"""
from alembic import op
import sqlalchemy as sa

revision = "002_jobs"
down_revision = "001_billing"
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def _mark_table(name: str, constraint: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        *_timestamps(),
        sa.UniqueConstraint("job_id", "user_id", name=constraint),
    )


def upgrade() -> None:
    # ── searches ──
    op.create_table(
        "searches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        *_timestamps(),
    )

    # ── jobs ──
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("search_id", sa.Integer(), sa.ForeignKey("searches.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("company", sa.String(255), nullable=False),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("state", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("source", sa.String(100), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True)),
        sa.Column("level", sa.String(100)),
        sa.Column("job_type", sa.String(100), nullable=False, server_default="N/A"),
        sa.Column("salary_min", sa.Numeric(12, 2)),
        sa.Column("salary_max", sa.Numeric(12, 2)),
        sa.Column("is_home_office", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_confidential", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
    )

    # ── marks ──
    _mark_table("job_favorites", "uq_job_favorites_job_user")
    _mark_table("job_views", "uq_job_views_job_user")

    # ── job areas ──
    op.create_table(
        "job_areas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), unique=True, nullable=False),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("job_areas")
    op.drop_table("job_views")
    op.drop_table("job_favorites")
    op.drop_table("jobs")
    op.drop_table("searches")
