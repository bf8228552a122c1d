"""
JWT token management for authentication.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict

from confportal.config import get_settings
from confportal.kernel.models.user import UserRole


class AccessTokenPayload(BaseModel):
    """
    Verified JWT access token claims.

    ``role`` is the typed role claim consulted first by the admin resolver.
    """

    model_config = ConfigDict(from_attributes=True)

    sub: str  # User ID
    email: str
    role: Optional[UserRole] = None
    exp: datetime
    iat: datetime
    jti: str


class AccessToken(BaseModel):
    """Bearer token returned to the client."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until the token expires


class JWTManager:
    """JWT access token creation and verification."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = (
            access_token_expire_minutes or settings.access_token_expire_minutes
        )

    def create_access_token(
        self,
        user_id: uuid.UUID,
        email: str,
        role: Optional[str],
        expires_delta: Optional[timedelta] = None,
    ) -> AccessToken:
        """
        Create a new access token.

        Args:
            user_id: User's unique identifier
            email: User's email
            role: User's role, or None when the account has no category
            expires_delta: Optional custom expiration time
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))

        payload = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": "access",
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return AccessToken(
            access_token=token,
            expires_in=int((expire - now).total_seconds()),
        )

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """
        Verify and decode an access token.

        Returns:
            AccessTokenPayload if valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except JWTError:
            return None

        if payload.get("type") != "access":
            return None

        role = payload.get("role")
        try:
            typed_role = UserRole(role) if role else None
        except ValueError:
            typed_role = None

        return AccessTokenPayload(
            sub=payload["sub"],
            email=payload["email"],
            role=typed_role,
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            jti=payload["jti"],
        )


def verify_access_token(token: str) -> Optional[AccessTokenPayload]:
    """Verify an access token with the configured secret."""
    return JWTManager().verify_access_token(token)
