"""
Jobs Router - jobs pushed by the search service and the user's marks on them.

Endpoints:
- POST /jobs/webhook              - Batch of jobs found by a search (search service)
- GET  /jobs                      - Jobs of the user's searches, newest first
- GET  /jobs/favorites            - The user's favorited jobs
- POST /jobs/{job_id}/view        - Mark a job as viewed (idempotent)
- POST /jobs/{job_id}/favorite    - Favorite a job
- POST /jobs/{job_id}/unfavorite  - Remove a job from the favorites
"""

import logging
import os
import secrets
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path

from app.api.schemas.job import JobBatch, JobResponse, MessageResponse
from app.core.auth import UserInfo, get_current_user
from app.core.exceptions import AuthError
from app.core.services.job_service import JobService
from app.database.repositories.job_repository import MarkedJob

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_webhook_token(x_webhook_token: Optional[str] = Header(None)) -> None:
    """Shared-secret check for the search service (header x-webhook-token)."""
    expected = os.getenv("JOBS_WEBHOOK_TOKEN", "")
    if not expected:
        logger.warning("JOBS_WEBHOOK_TOKEN not set: accepting unauthenticated jobs webhook")
        return
    if not x_webhook_token or not secrets.compare_digest(x_webhook_token, expected):
        raise AuthError("Token do webhook inválido")


def _job_response(marked: MarkedJob) -> JobResponse:
    job, is_favorited, is_viewed = marked
    response = JobResponse.model_validate(job)
    response.is_favorited = is_favorited
    response.is_viewed = is_viewed
    return response


@router.post("/webhook", response_model=MessageResponse, dependencies=[Depends(verify_webhook_token)])
async def jobs_webhook(
    batch: JobBatch,
    service: JobService = Depends(JobService.instance),
):
    await service.receive(batch)
    return MessageResponse(message="Vagas recebidas com sucesso")


@router.get("", response_model=List[JobResponse])
async def list_jobs(
    user: UserInfo = Depends(get_current_user),
    service: JobService = Depends(JobService.instance),
):
    return [_job_response(marked) for marked in await service.list_jobs(user.db_id)]


@router.get("/favorites", response_model=List[JobResponse])
async def list_favorites(
    user: UserInfo = Depends(get_current_user),
    service: JobService = Depends(JobService.instance),
):
    return [_job_response(marked) for marked in await service.list_favorites(user.db_id)]


@router.post("/{job_id}/view", response_model=MessageResponse)
async def view_job(
    job_id: int = Path(...),
    user: UserInfo = Depends(get_current_user),
    service: JobService = Depends(JobService.instance),
):
    await service.mark_viewed(job_id, user.db_id)
    return MessageResponse(message="Vaga marcada como vista")


@router.post("/{job_id}/favorite", response_model=MessageResponse)
async def favorite_job(
    job_id: int = Path(...),
    user: UserInfo = Depends(get_current_user),
    service: JobService = Depends(JobService.instance),
):
    await service.favorite(job_id, user.db_id)
    return MessageResponse(message="Vaga favoritada com sucesso")


@router.post("/{job_id}/unfavorite", response_model=MessageResponse)
async def unfavorite_job(
    job_id: int = Path(...),
    user: UserInfo = Depends(get_current_user),
    service: JobService = Depends(JobService.instance),
):
    await service.unfavorite(job_id, user.db_id)
    return MessageResponse(message="Vaga removida dos favoritos")
