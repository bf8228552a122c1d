"""
Permission Core - admin authorization.
"""

from confportal.kernel.permissions.admin_resolver import (
    AdminResolver,
    AdminStrategy,
    ClaimStrategy,
    RegistryStrategy,
    UserRoleStrategy,
)

__all__ = [
    "AdminResolver",
    "AdminStrategy",
    "ClaimStrategy",
    "RegistryStrategy",
    "UserRoleStrategy",
]
