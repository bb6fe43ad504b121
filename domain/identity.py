"""
Domain: caller identity.

Authentication happens outside the core. Admin-surface operations receive an
already-authenticated CallerIdentity and only check that it belongs to an
admin at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import PermissionDeniedError

ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
ADMIN_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPER_ADMIN})


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    id: str
    role: str
    username: Optional[str] = None

    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN


def require_admin(caller: Optional[CallerIdentity]) -> CallerIdentity:
    """Return the caller if it is an admin, otherwise raise PermissionDeniedError."""

    if caller is None or not caller.is_admin():
        raise PermissionDeniedError("Admin privileges are required for this operation")
    return caller


__all__ = [
    "ADMIN_ROLES",
    "CallerIdentity",
    "ROLE_ADMIN",
    "ROLE_SUPER_ADMIN",
    "require_admin",
]
