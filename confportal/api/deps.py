"""
FastAPI dependencies for authentication, database sessions and the
external collaborators (file hosting, payment gateway).

Collaborators are resolved through dependencies so tests can replace
them with ``app.dependency_overrides``.
"""

import uuid
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.config import Settings, get_settings
from confportal.database import get_db
from confportal.engines.payments.gateway import EasebuzzGateway, PaymentGateway
from confportal.engines.storage.file_hosting import (
    FileHostingService,
    S3FileHosting,
    UploadedFile,
)
from confportal.kernel.identity.identity_service import IdentityService
from confportal.kernel.identity.jwt import AccessTokenPayload, verify_access_token
from confportal.kernel.models.user import User


# Security scheme
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_settings_dep() -> Settings:
    return get_settings()


AppSettings = Annotated[Settings, Depends(get_settings_dep)]


@lru_cache
def _s3_file_hosting() -> S3FileHosting:
    return S3FileHosting(get_settings())


def get_file_host() -> FileHostingService:
    """Object storage used for papers and verification documents."""
    return _s3_file_hosting()


def get_gateway(settings: AppSettings) -> PaymentGateway:
    """Payment gateway client."""
    return EasebuzzGateway(settings)


FileHost = Annotated[FileHostingService, Depends(get_file_host)]
Gateway = Annotated[PaymentGateway, Depends(get_gateway)]


async def get_token_claims(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AccessTokenPayload:
    """Verified access-token claims, or 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


TokenClaims = Annotated[AccessTokenPayload, Depends(get_token_claims)]


async def get_current_user(
    claims: TokenClaims,
    db: DbSession,
) -> User:
    """Get current authenticated user or raise 401."""
    try:
        user_id = uuid.UUID(claims.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity_service = IdentityService(db)
    user = await identity_service.get_user_by_id(user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Read a multipart file into memory; size limits are checked by the services."""
    if file is None:
        return None
    data = await file.read()
    return UploadedFile(
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=data,
    )
