"""
Barangay Portal - User Context System
Handles identity and role for each user session.

Design Principles:
- Username is the stable identity (stored lower-cased)
- Role decides which actions are allowed
- Legacy account records carry admin-ness in several fields; they are
  normalized once, here, and every route asks the Authorizer
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from barangay.core.utc import utc_now


# =============================================================================
# User Roles
# =============================================================================

class UserRole(str, Enum):
    """Account roles known to the portal."""
    ADMIN = "admin"        # Barangay officials: full case management
    CLERK = "clerk"        # Front-desk staff
    USER = "user"          # Resident: files and tracks own cases
    PENDING = "pending"    # Account awaiting verification

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        text = str(value or "").strip().lower()
        for role in cls:
            if role.value == text:
                return role
        return cls.USER


_ADMIN_ROLE_PATTERN = re.compile(r"^(admin)$", re.IGNORECASE)


# =============================================================================
# User Context (carries all session context)
# =============================================================================

@dataclass
class UserContext:
    """
    Context for an authenticated user session.
    This is what gets passed to route handlers.
    """
    username: str
    name: str = ""
    role: UserRole = UserRole.USER

    session_id: Optional[str] = None
    authenticated_at: Optional[datetime] = None

    def __post_init__(self):
        self.username = (self.username or "").strip().lower()

    @classmethod
    def from_session_user(cls, user: Mapping[str, Any], session_id: Optional[str] = None) -> "UserContext":
        """
        Build a context from a stored account record.

        Older records mark administrators with `isAdmin`, `type` or
        `accountType` instead of `role`; all of them mean ADMIN.
        """
        role = UserRole.parse(user.get("role"))
        if (
            _ADMIN_ROLE_PATTERN.match(str(user.get("role") or ""))
            or user.get("isAdmin") is True
            or user.get("type") == "admin"
            or user.get("accountType") == "admin"
        ):
            role = UserRole.ADMIN
        return cls(
            username=str(user.get("username") or ""),
            name=str(user.get("name") or ""),
            role=role,
            session_id=session_id,
            authenticated_at=utc_now(),
        )

    def as_actor(self) -> dict:
        """Embedded {username, name} stamp used on history/hearing/evidence entries."""
        return {"username": self.username, "name": self.name}

    def to_dict(self) -> dict:
        return {"username": self.username, "name": self.name, "role": self.role.value}


class Authorizer:
    """Single place that answers role questions."""

    @staticmethod
    def has_role(user: Optional[UserContext], role: UserRole) -> bool:
        return user is not None and user.role == role

    @classmethod
    def is_admin(cls, user: Optional[UserContext]) -> bool:
        return cls.has_role(user, UserRole.ADMIN)


# =============================================================================
# Session Storage Structure
# =============================================================================

@dataclass
class StoredSession:
    """
    What we keep in the session store.
    Contains everything needed to reconstruct UserContext.
    """
    session_id: str
    username: str
    name: str
    role: UserRole
    created_at: datetime = field(default_factory=utc_now)
    last_activity: datetime = field(default_factory=utc_now)

    def to_context(self) -> UserContext:
        return UserContext(
            username=self.username,
            name=self.name,
            role=self.role,
            session_id=self.session_id,
            authenticated_at=self.created_at,
        )
