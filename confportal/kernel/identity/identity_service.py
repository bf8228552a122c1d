"""
Identity service for user management operations.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.kernel.errors import ValidationError
from confportal.kernel.models.user import User, UserRole
from confportal.kernel.models.event_log import EventType
from confportal.kernel.events.event_store import EventStore
from confportal.kernel.identity.password import hash_password, verify_password
from confportal.kernel.identity.jwt import AccessToken, JWTManager

# Roles a user may pick at registration; admin is granted, never chosen
SELF_SERVICE_ROLES = (UserRole.STUDENT, UserRole.SCHOLAR)


def role_value(role) -> Optional[str]:
    """Role as a plain string; the column hands back str, new objects hold the enum."""
    if role is None:
        return None
    return UserRole(role).value


class IdentityService:
    """
    Service for user identity operations.

    Handles user registration, authentication and lookups.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.jwt_manager = JWTManager()
        self.event_store = EventStore(session)

    async def register_user(
        self,
        email: str,
        password: str,
        full_name: str,
        role: UserRole = UserRole.STUDENT,
        phone: Optional[str] = None,
        institution: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> User:
        """
        Register a new user.

        Raises:
            ValidationError: If the email already exists or the role is not self-service
        """
        if role not in SELF_SERVICE_ROLES:
            raise ValidationError("Role must be student or scholar")

        existing = await self.get_user_by_email(email)
        if existing:
            raise ValidationError("Email already registered")

        user = User(
            email=email.lower().strip(),
            password_hash=hash_password(password),
            full_name=full_name.strip(),
            role=role,
            phone=phone,
            institution=institution.strip() if institution else None,
        )

        self.session.add(user)
        await self.session.flush()  # Get the ID

        await self.event_store.log(
            event_type=EventType.USER_REGISTERED,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            payload={"email": user.email, "role": role_value(user.role)},
            ip_address=ip_address,
        )

        return user

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> Optional[tuple[User, AccessToken]]:
        """
        Authenticate a user and issue an access token.

        Returns:
            Tuple of (User, AccessToken) if successful, None otherwise
        """
        user = await self.get_user_by_email(email)
        if not user:
            return None

        if not verify_password(password, user.password_hash):
            return None

        if not user.is_active:
            return None

        token = self.jwt_manager.create_access_token(
            user_id=user.id,
            email=user.email,
            role=role_value(user.role),
        )

        await self.event_store.log(
            event_type=EventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user.id,
            user_id=user.id,
            payload={"method": "password"},
            ip_address=ip_address,
        )

        return user, token

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get a user by ID."""
        query = select(User).where(User.id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email."""
        query = select(User).where(User.email == email.lower().strip())
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
