"""
Job Service - intake of jobs pushed by the search service and the user's
favorite/viewed marks.

Marks are per (job, user) pair. Viewing is idempotent; favoriting twice or
unfavoriting a job that is not a favorite is a client error.
"""

import logging
from decimal import Decimal
from typing import Any, List, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas.job import JobBatch, JobPayload
from app.core.exceptions import NotFoundError, ValidationError
from app.database.models.job import Job, JobArea
from app.database.models.user import User
from app.database.repositories.job_repository import JobRepository, MarkedJob
from app.database.session import get_db

logger = logging.getLogger(__name__)

NO_DESCRIPTION = "Sem descrição disponível"
NO_JOB_TYPE = "N/A"


def _salary(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return Decimal(str(value))


def job_from_payload(search_id: int, payload: JobPayload) -> Job:
    return Job(
        search_id=search_id,
        title=payload.cargo,
        company=payload.empresa,
        city=payload.cidade,
        state=payload.estado,
        description=payload.descricao or NO_DESCRIPTION,
        url=payload.url,
        source=payload.origem,
        published_at=payload.data_publicacao,
        level=payload.nivel or None,
        job_type=payload.tipo or NO_JOB_TYPE,
        salary_min=_salary(payload.salario_minimo),
        salary_max=_salary(payload.salario_maximo),
        is_home_office=bool(payload.is_home_office),
        is_confidential=bool(payload.is_confidential),
    )


class JobService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.jobs = JobRepository(session)

    @staticmethod
    def instance(session: AsyncSession = Depends(get_db)):
        return JobService(session)

    async def receive(self, batch: JobBatch) -> int:
        """Store a batch of jobs under its search, creating the search on first sight."""
        user = await self.session.get(User, batch.user_id)
        if user is None:
            raise NotFoundError("Usuário não encontrado")

        search = await self.jobs.get_search(batch.search_id)
        if search is None:
            search = await self.jobs.add_search(batch.search_id, user.id)
        elif search.user_id != user.id:
            raise ValidationError("Busca pertence a outro usuário")

        await self.jobs.add_jobs([job_from_payload(search.id, payload) for payload in batch.jobs])
        logger.info(f"{len(batch.jobs)} jobs received for search {search.id} (user {user.id})")
        return len(batch.jobs)

    async def list_jobs(self, user_id: int) -> List[MarkedJob]:
        return await self.jobs.list_for_user(user_id)

    async def list_favorites(self, user_id: int) -> List[MarkedJob]:
        return await self.jobs.list_for_user(user_id, favorites_only=True)

    async def mark_viewed(self, job_id: int, user_id: int) -> None:
        await self._require_job(job_id, user_id)
        if await self.jobs.get_view(job_id, user_id) is None:
            try:
                await self.jobs.add_view(job_id, user_id)
            except IntegrityError:
                # a concurrent request marked it first
                await self.session.rollback()

    async def favorite(self, job_id: int, user_id: int) -> None:
        await self._require_job(job_id, user_id)
        if await self.jobs.get_favorite(job_id, user_id) is not None:
            raise ValidationError("Vaga já está favoritada")
        try:
            await self.jobs.add_favorite(job_id, user_id)
        except IntegrityError:
            await self.session.rollback()
            raise ValidationError("Vaga já está favoritada")
        logger.info(f"Job {job_id} favorited by user {user_id}")

    async def unfavorite(self, job_id: int, user_id: int) -> None:
        await self._require_job(job_id, user_id)
        if not await self.jobs.remove_favorite(job_id, user_id):
            raise ValidationError("Vaga não está favoritada")
        logger.info(f"Job {job_id} unfavorited by user {user_id}")

    async def search_areas(self, query: Optional[str]) -> List[JobArea]:
        return await self.jobs.search_areas(query or "")

    async def _require_job(self, job_id: int, user_id: int) -> Job:
        job = await self.jobs.get_for_user(job_id, user_id)
        if job is None:
            raise NotFoundError("Vaga não encontrada")
        return job
