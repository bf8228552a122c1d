"""
Admin authorization resolver.

Administrative privilege can come from three places. They are tried in a
fixed order and the first one that says yes wins:

1. The typed role claim on the caller's verified access token
2. Membership in the administrators registry
3. ``role == admin`` on the user record

The resolver never writes.
"""

import uuid
from typing import List, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from confportal.kernel.errors import AuthorizationError
from confportal.kernel.identity.jwt import AccessTokenPayload
from confportal.kernel.models.user import Administrator, User, UserRole
from confportal.logging_config import get_logger

logger = get_logger(__name__)


class AdminStrategy(Protocol):
    """One source of administrative privilege."""

    name: str

    async def is_admin(
        self,
        candidate_id: uuid.UUID,
        claims: Optional[AccessTokenPayload],
    ) -> bool:
        ...


class ClaimStrategy:
    """Admin role claim on a token whose subject is the candidate."""

    name = "claim"

    async def is_admin(
        self,
        candidate_id: uuid.UUID,
        claims: Optional[AccessTokenPayload],
    ) -> bool:
        if claims is None or claims.sub != str(candidate_id):
            return False
        return claims.role == UserRole.ADMIN


class RegistryStrategy:
    """Row in the administrators registry."""

    name = "registry"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_admin(
        self,
        candidate_id: uuid.UUID,
        claims: Optional[AccessTokenPayload],
    ) -> bool:
        result = await self.session.execute(
            select(Administrator.user_id).where(Administrator.user_id == candidate_id)
        )
        return result.scalar_one_or_none() is not None


class UserRoleStrategy:
    """``role == admin`` on the candidate's user record."""

    name = "user_role"

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_admin(
        self,
        candidate_id: uuid.UUID,
        claims: Optional[AccessTokenPayload],
    ) -> bool:
        result = await self.session.execute(
            select(User.role).where(User.id == candidate_id)
        )
        return result.scalar_one_or_none() == UserRole.ADMIN


class AdminResolver:
    """
    Decides whether a user has administrative privilege.

    Usage:
        resolver = AdminResolver(session)
        await resolver.require_admin(user.id, claims)
    """

    def __init__(
        self,
        session: AsyncSession,
        strategies: Optional[Sequence[AdminStrategy]] = None,
    ):
        self.session = session
        self.strategies: List[AdminStrategy] = list(
            strategies
            if strategies is not None
            else (ClaimStrategy(), RegistryStrategy(session), UserRoleStrategy(session))
        )

    async def is_admin(
        self,
        candidate_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
    ) -> bool:
        """Return True as soon as one strategy grants privilege."""
        for strategy in self.strategies:
            if await strategy.is_admin(candidate_id, claims):
                logger.debug(
                    "Admin privilege resolved",
                    extra={"user_id": str(candidate_id), "strategy": strategy.name},
                )
                return True
        return False

    async def require_admin(
        self,
        candidate_id: uuid.UUID,
        claims: Optional[AccessTokenPayload] = None,
    ) -> None:
        """Raise AuthorizationError unless the candidate is an admin."""
        if not await self.is_admin(candidate_id, claims):
            raise AuthorizationError()
