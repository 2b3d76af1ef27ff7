"""
Search Router - suggestions for the search form (public).

Endpoints:
- GET /search/job-areas?q=  - Up to 10 job areas whose name contains q (case-insensitive)
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.schemas.job import JobAreaResponse
from app.core.services.job_service import JobService

router = APIRouter()


@router.get("/job-areas", response_model=List[JobAreaResponse])
async def job_areas(
    q: Optional[str] = Query(None),
    service: JobService = Depends(JobService.instance),
):
    return [JobAreaResponse.model_validate(area) for area in await service.search_areas(q)]
