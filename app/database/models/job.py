"""Job models - searches run for a user, the jobs they found and the user's marks on them."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.models.model_base import SqlAlchemyModel


class Search(SqlAlchemyModel):
    __tablename__ = "searches"

    # id is assigned by the search service that pushes the jobs
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Search id={self.id} user_id={self.user_id}>"


class Job(SqlAlchemyModel):
    __tablename__ = "jobs"

    search_id: Mapped[int] = mapped_column(
        ForeignKey("searches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    state: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(String(100), nullable=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    level: Mapped[Optional[str]] = mapped_column(String(100))
    job_type: Mapped[str] = mapped_column(String(100), nullable=False, default="N/A")

    salary_min: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    salary_max: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    is_home_office: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_confidential: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    search: Mapped["Search"] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<Job id={self.id} title={self.title} company={self.company}>"


class JobFavorite(SqlAlchemyModel):
    __tablename__ = "job_favorites"
    __table_args__ = (UniqueConstraint("job_id", "user_id", name="uq_job_favorites_job_user"),)

    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<JobFavorite job_id={self.job_id} user_id={self.user_id}>"


class JobView(SqlAlchemyModel):
    __tablename__ = "job_views"
    __table_args__ = (UniqueConstraint("job_id", "user_id", name="uq_job_views_job_user"),)

    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<JobView job_id={self.job_id} user_id={self.user_id}>"


class JobArea(SqlAlchemyModel):
    """Catalog of job areas offered as search suggestions."""

    __tablename__ = "job_areas"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<JobArea {self.name}>"
