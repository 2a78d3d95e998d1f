"""
Barangay Portal - Security Module
Session lookup and role-gated FastAPI dependencies.

Login itself lives outside the case module: whatever authenticates a
resident or official calls create_session() and hands the returned id to
the browser as the session cookie.
"""

import logging
import secrets
import threading
from typing import Any, Mapping, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from barangay.core.config import Settings, get_settings
from barangay.core.errors import AuthenticationRequired, PermissionDenied
from barangay.core.user_context import Authorizer, StoredSession, UserContext, UserRole
from barangay.core.utc import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Session Store (in-memory)
# =============================================================================

SESSIONS: dict[str, StoredSession] = {}
_sessions_lock = threading.Lock()


def create_session(user: Mapping[str, Any]) -> StoredSession:
    """
    Start a session for an authenticated account record
    ({username, name, role, ...legacy admin flags}).
    """
    context = UserContext.from_session_user(user)
    if not context.username:
        raise ValueError("cannot create a session without a username")
    session = StoredSession(
        session_id=secrets.token_urlsafe(32),
        username=context.username,
        name=context.name,
        role=context.role,
    )
    with _sessions_lock:
        SESSIONS[session.session_id] = session
    logger.info("Session created for %s (role=%s)", session.username, session.role.value)
    return session


def get_session(session_id: str) -> Optional[StoredSession]:
    with _sessions_lock:
        session = SESSIONS.get(session_id)
        if session is not None:
            session.last_activity = utc_now()
        return session


def invalidate_session(session_id: str) -> bool:
    with _sessions_lock:
        return SESSIONS.pop(session_id, None) is not None


def get_session_id_from_request(
    request: Request,
    cookie_value: Optional[str],
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """
    Extract the session id.

    Priority:
    1. Session cookie
    2. Authorization: Bearer <session_id>
    3. X-Session-Id header
    """
    if cookie_value:
        return cookie_value
    if credentials:
        return credentials.credentials
    return request.headers.get("X-Session-Id")


# =============================================================================
# FastAPI Dependencies
# =============================================================================

security_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_bearer),
    settings: Settings = Depends(get_settings),
) -> Optional[UserContext]:
    """Get current user context from the session, or None."""
    cookie_value = request.cookies.get(settings.session_cookie_name)
    session_id = get_session_id_from_request(request, cookie_value, credentials)
    if not session_id:
        return None
    session = get_session(session_id)
    return session.to_context() if session else None


async def require_user(
    user: Optional[UserContext] = Depends(get_current_user),
) -> UserContext:
    """Require an authenticated user."""
    if user is None:
        raise AuthenticationRequired()
    return user


def require_role(*roles: UserRole):
    """
    Dependency factory: require specific role(s).

    Usage:
        @router.post("/admin-only")
        def admin_endpoint(user: UserContext = Depends(require_role(UserRole.ADMIN))):
            ...
    """
    async def check_role(user: UserContext = Depends(require_user)) -> UserContext:
        if not any(Authorizer.has_role(user, role) for role in roles):
            if roles == (UserRole.ADMIN,):
                raise PermissionDenied("Admin only.")
            raise PermissionDenied(
                f"This action requires one of these roles: {', '.join(r.value for r in roles)}."
            )
        return user

    return check_role


require_admin = require_role(UserRole.ADMIN)
