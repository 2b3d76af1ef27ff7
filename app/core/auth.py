"""
Firebase Authentication dependency for FastAPI.

Verifies Firebase ID tokens and syncs the user into the local database.
Uses the async DB session of the request.
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin import exceptions as firebase_exceptions
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthError, ForbiddenError, ProviderError
from app.database.session import get_db
from app.database.models.user import User

logger = logging.getLogger(__name__)

_firebase_app: Optional[firebase_admin.App] = None

DEV_UID = "dev-uid-001"
DEV_EMAIL = "dev@jobboard.local"


def _firebase_credentials():
    """
    credentials.Certificate from FIREBASE_CREDENTIALS (service account JSON,
    minified on one line), or None when unset/invalid.
    """
    json_str = os.getenv("FIREBASE_CREDENTIALS", "").strip()
    if not json_str:
        return None
    try:
        return credentials.Certificate(json.loads(json_str))
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(f"FIREBASE_CREDENTIALS: JSON inválido - {e}")
        return None


def init_firebase() -> None:
    """Initialize Firebase Admin SDK. Call once at app startup."""
    global _firebase_app
    if _firebase_app is not None:
        return

    cred = _firebase_credentials()
    if cred is not None:
        _firebase_app = firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin SDK initialized (credentials from env)")
    elif dev_mode():
        logger.info("Firebase Admin SDK skipped: AUTH_DEV_MODE without FIREBASE_CREDENTIALS")
    else:
        try:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("Firebase Admin SDK initialized with default credentials")
        except Exception as e:
            logger.warning(
                f"Firebase Admin SDK not initialized: {e}. "
                "Only AUTH_DEV_MODE requests will be accepted."
            )


@dataclass
class UserInfo:
    """Authenticated user information."""
    uid: str
    email: str
    name: Optional[str] = None
    role: str = "user"
    db_id: Optional[int] = None


security = HTTPBearer(auto_error=False)


def dev_mode() -> bool:
    return os.getenv("AUTH_DEV_MODE", "false").lower() == "true"


async def _get_or_create_user(
    db: AsyncSession,
    firebase_uid: str,
    email: str,
    name: Optional[str] = None,
) -> User:
    """Get existing user or create new one from Firebase data."""
    result = await db.execute(select(User).where(User.firebase_uid == firebase_uid))
    user = result.scalar_one_or_none()
    if user:
        return user

    user = User(
        firebase_uid=firebase_uid,
        email=email,
        name=name,
        role="user",
        is_active=True,
    )
    db.add(user)
    await db.flush()
    logger.info(f"User created on first sight: {email}")
    return user


def _user_info(user: User) -> UserInfo:
    if not user.is_active:
        raise ForbiddenError("Conta de usuário desativada")
    return UserInfo(
        uid=user.firebase_uid,
        email=user.email,
        name=user.name,
        role=user.role,
        db_id=user.id,
    )


async def get_current_user(
    request: Request,
    cred: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> UserInfo:
    """
    FastAPI dependency that extracts and verifies the Firebase ID token.

    In dev mode (AUTH_DEV_MODE=true), a request without token runs as the dev user.
    Optional header X-Dev-User-Email impersonates an existing user.
    """
    if dev_mode() and cred is None:
        dev_email = (request.headers.get("X-Dev-User-Email") or "").strip()
        if dev_email:
            result = await db.execute(select(User).where(User.email == dev_email))
            user = result.scalar_one_or_none()
            if not user:
                raise AuthError(f"Usuário de desenvolvimento não encontrado: {dev_email}")
            return _user_info(user)
        user = await _get_or_create_user(db, DEV_UID, DEV_EMAIL, "Developer")
        return _user_info(user)

    if cred is None:
        raise AuthError()

    if _firebase_app is None:
        init_firebase()
    if _firebase_app is None:
        raise ProviderError(provider="firebase", detail="Firebase Admin SDK not initialized")

    try:
        decoded = firebase_auth.verify_id_token(cred.credentials)
    except firebase_auth.ExpiredIdTokenError:
        raise AuthError("Token expirado")
    except firebase_auth.InvalidIdTokenError:
        raise AuthError("Token inválido")
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.error(f"Token verification failed: {e}")
        raise AuthError("Falha ao verificar token")

    user = await _get_or_create_user(
        db,
        decoded["uid"],
        decoded.get("email", ""),
        decoded.get("name"),
    )
    return _user_info(user)


async def get_current_admin(
    user: UserInfo = Depends(get_current_user),
) -> UserInfo:
    """Dependency that requires admin role."""
    if user.role != "admin":
        raise ForbiddenError("Acesso restrito a administradores")
    return user
