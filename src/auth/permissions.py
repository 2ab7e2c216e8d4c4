"""Roles and the authenticated caller value.

Authorization in this API is two flat checks: "is there an authenticated
caller" and "is the caller an admin".
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class UserRole(str, Enum):
    """Account roles."""

    LEARNER = "learner"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return UserRole.ADMIN.value == (role.value if isinstance(role, UserRole) else role)


@dataclass(frozen=True)
class Caller:
    """Identity of whoever is making the current request.

    Core operations receive this value explicitly instead of reading
    the request; ``None`` in its place means an anonymous caller.
    """

    id: UUID
    role: str = UserRole.LEARNER.value

    @property
    def is_admin(self) -> bool:
        return is_admin(self.role)
