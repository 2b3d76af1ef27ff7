"""
Job Repository

Searches and jobs pushed by the search service, plus the per-user favorite and
viewed marks. Listing queries return each job with the two marks already
resolved for the requesting user.
"""

from typing import List, Optional, Tuple

from sqlalchemy import delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database.models.job import Job, JobArea, JobFavorite, JobView, Search
from app.database.repositories.repository import BaseRepository

# (job, is_favorited, is_viewed)
MarkedJob = Tuple[Job, bool, bool]


class JobRepository(BaseRepository[Job]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Job)

    # ── Searches and jobs ──

    async def get_search(self, search_id: int) -> Optional[Search]:
        return await self.session.get(Search, search_id)

    async def add_search(self, search_id: int, user_id: int) -> Search:
        search = Search(id=search_id, user_id=user_id)
        self.session.add(search)
        await self.session.flush()
        return search

    async def add_jobs(self, jobs: List[Job]) -> None:
        self.session.add_all(jobs)
        await self.session.flush()

    async def get_for_user(self, job_id: int, user_id: int) -> Optional[Job]:
        """Job found by one of the user's searches."""
        result = await self.session.execute(
            select(Job).join(Search, Job.search_id == Search.id).where(Job.id == job_id, Search.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int, favorites_only: bool = False) -> List[MarkedJob]:
        """Jobs of the user's searches, newest first."""
        favorited = exists().where(JobFavorite.job_id == Job.id, JobFavorite.user_id == user_id)
        viewed = exists().where(JobView.job_id == Job.id, JobView.user_id == user_id)

        query = (
            select(Job, favorited.label("is_favorited"), viewed.label("is_viewed"))
            .join(Search, Job.search_id == Search.id)
            .where(Search.user_id == user_id)
            .order_by(Job.created_at.desc(), Job.id.desc())
        )
        if favorites_only:
            query = query.where(favorited)

        result = await self.session.execute(query)
        return [(job, bool(is_favorited), bool(is_viewed)) for job, is_favorited, is_viewed in result.all()]

    # ── Marks ──

    async def get_favorite(self, job_id: int, user_id: int) -> Optional[JobFavorite]:
        result = await self.session.execute(
            select(JobFavorite).where(JobFavorite.job_id == job_id, JobFavorite.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add_favorite(self, job_id: int, user_id: int) -> JobFavorite:
        favorite = JobFavorite(job_id=job_id, user_id=user_id)
        self.session.add(favorite)
        await self.session.flush()
        return favorite

    async def remove_favorite(self, job_id: int, user_id: int) -> bool:
        result = await self.session.execute(
            delete(JobFavorite).where(JobFavorite.job_id == job_id, JobFavorite.user_id == user_id)
        )
        return result.rowcount > 0

    async def get_view(self, job_id: int, user_id: int) -> Optional[JobView]:
        result = await self.session.execute(
            select(JobView).where(JobView.job_id == job_id, JobView.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add_view(self, job_id: int, user_id: int) -> JobView:
        view = JobView(job_id=job_id, user_id=user_id)
        self.session.add(view)
        await self.session.flush()
        return view

    # ── Areas ──

    async def search_areas(self, query: str, limit: int = 10) -> List[JobArea]:
        result = await self.session.execute(
            select(JobArea).where(JobArea.name.icontains(query, autoescape=True)).order_by(JobArea.name).limit(limit)
        )
        return list(result.scalars().all())
