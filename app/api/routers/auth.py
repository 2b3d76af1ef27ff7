"""
Auth Router - profile of the authenticated user.

Endpoints:
- GET  /auth/me - Get current user profile
- PUT  /auth/me - Update name, phone and CPF/CNPJ (the last is needed for Asaas)
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas.user import UserProfileResponse, UserProfileUpdate
from app.core.auth import UserInfo, get_current_user
from app.core.exceptions import NotFoundError
from app.database.models.user import User
from app.database.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


async def _load_user(db: AsyncSession, current_user: UserInfo) -> User:
    user = await db.get(User, current_user.db_id)
    if not user:
        raise NotFoundError("Usuário não encontrado")
    return user


@router.get("/me", response_model=UserProfileResponse)
async def get_profile(
    current_user: UserInfo = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the authenticated user's profile."""
    user = await _load_user(db, current_user)
    return UserProfileResponse.model_validate(user)


@router.put("/me", response_model=UserProfileResponse)
async def update_profile(
    update_data: UserProfileUpdate,
    current_user: UserInfo = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the authenticated user's profile."""
    user = await _load_user(db, current_user)

    update_dict = update_data.model_dump(exclude_unset=True)
    for key, value in update_dict.items():
        setattr(user, key, value)

    await db.flush()
    logger.info(f"User profile updated: {current_user.email}")
    return UserProfileResponse.model_validate(user)
