"""
Auth domain types - no dependencies on other auth modules.

NOTE: Keep this minimal. Only add types here if they are:
1. Used by 3+ auth submodules, AND
2. Would otherwise cause circular imports
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional


class PortalRole(str, Enum):
    """Portal account roles (distinct from senapoti leadership roles)."""
    ADMIN = "ADMIN"
    OFFICE = "OFFICE"
    DISTRICT_SUPERVISOR = "DISTRICT_SUPERVISOR"


@dataclass(frozen=True)
class Principal:
    """Authenticated user for the current request (immutable)."""
    id: int
    username: str
    role: PortalRole
    districts: frozenset[str]
    is_active: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value,
            "districts": sorted(self.districts),
        }


@dataclass(frozen=True)
class TokenPayload:
    """Decoded JWT payload (immutable)."""
    sub: str  # username
    user_id: int
    role: str
    districts: tuple[str, ...]
    session_token: str
    jti: str
    iat: datetime
    exp: datetime


@dataclass(frozen=True)
class QueryConstraint:
    """District filter derived from a principal.

    `districts` is None for unrestricted principals. Restricted principals
    never widen their scope: whatever district the client asks for is
    replaced by their own set.
    """
    districts: Optional[frozenset[str]] = None

    @property
    def is_unrestricted(self) -> bool:
        return self.districts is None

    def effective_districts(self, requested: Optional[Iterable[str]] = None) -> Optional[frozenset[str]]:
        """Districts a query may touch.

        Args:
            requested: client-supplied district filter (may be None)

        Returns:
            None for "no district filter", otherwise the set to filter on
            (possibly empty, which matches nothing).
        """
        if self.is_unrestricted:
            return frozenset(requested) if requested else None
        return self.districts

    def allows(self, district_code: Optional[str]) -> bool:
        if self.is_unrestricted:
            return True
        return district_code is not None and district_code in self.districts
