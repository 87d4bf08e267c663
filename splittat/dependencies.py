"""
Shared dependencies for the application.

Provides dependency injection functions used across routers: the
authenticated user and one service instance per request, all bound to the
request's database session.
"""

from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .domain.exceptions import AuthenticationFailed
from .models import User
from .repositories.sql_repository import (
    SqlGroupRepository,
    SqlReceiptRepository,
    SqlSplitRepository,
    SqlUserRepository,
)
from .services.auth_service import AuthError, AuthService
from .services.group_service import GroupService
from .services.receipt_service import ReceiptService
from .services.split_service import SplitService
from .storage import ImageStore, LocalImageStore

logger = structlog.get_logger(__name__)

# Missing credentials are reported as 401 by get_current_user.
security = HTTPBearer(auto_error=False)

_image_store: Optional[ImageStore] = None


def get_image_store() -> ImageStore:
    """Process-wide image store."""
    global _image_store
    if _image_store is None:
        _image_store = LocalImageStore()
    return _image_store


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(SqlUserRepository(db))


def get_receipt_service(
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
) -> ReceiptService:
    return ReceiptService(SqlReceiptRepository(db), images)


def get_group_service(db: Session = Depends(get_db)) -> GroupService:
    return GroupService(SqlGroupRepository(db), SqlUserRepository(db))


def get_split_service(db: Session = Depends(get_db)) -> SplitService:
    return SplitService(
        SqlSplitRepository(db),
        SqlReceiptRepository(db),
        SqlGroupRepository(db),
        SqlUserRepository(db),
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current authenticated user from the bearer token.

    Args:
        credentials: HTTP Bearer token from Authorization header
        auth_service: Auth service bound to the request session

    Returns:
        Stored user the token was issued for

    Raises:
        AuthenticationFailed: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise AuthenticationFailed("Missing authentication token")

    try:
        user = auth_service.current_user(credentials.credentials)
    except AuthError as e:
        raise AuthenticationFailed(e.message) from e

    logger.debug("User authenticated", user_id=user.id)
    return user
