from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


class JobPayload(BaseModel):
    """One job as the search service sends it."""

    cargo: str
    empresa: str
    cidade: str
    estado: str
    descricao: Optional[str] = None
    url: str
    origem: str
    data_publicacao: Optional[datetime] = None
    nivel: Optional[str] = None
    tipo: Optional[str] = None
    # anything but a number (e.g. "A combinar") is dropped
    salario_minimo: Optional[Any] = None
    salario_maximo: Optional[Any] = None
    is_home_office: Optional[bool] = None
    is_confidential: Optional[bool] = None


class JobBatch(BaseModel):
    search_id: int
    user_id: int
    jobs: List[JobPayload]


class SearchResponse(BaseModel):
    id: int
    user_id: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class JobResponse(BaseModel):
    id: int
    search_id: int
    title: str
    company: str
    city: str
    state: str
    description: str
    url: str
    source: str
    published_at: Optional[datetime] = None
    level: Optional[str] = None
    job_type: str
    salary_min: Optional[Decimal] = None
    salary_max: Optional[Decimal] = None
    is_home_office: bool
    is_confidential: bool
    created_at: datetime
    search: SearchResponse
    is_favorited: bool = False
    is_viewed: bool = False
    model_config = ConfigDict(from_attributes=True)


class JobAreaResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str
