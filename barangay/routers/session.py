"""
Session endpoints: who am I, and sign out.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from barangay.core.config import Settings, get_settings
from barangay.core.security import (
    get_session_id_from_request,
    invalidate_session,
    require_user,
    security_bearer,
)
from barangay.core.user_context import Authorizer, UserContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Session"])


@router.get("/me")
async def me(user: UserContext = Depends(require_user)):
    return {"ok": True, "user": {**user.to_dict(), "isAdmin": Authorizer.is_admin(user)}}


@router.post("/logout")
async def logout(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_bearer),
    settings: Settings = Depends(get_settings),
):
    """Drop the current session (if any) and clear the cookie."""
    session_id = get_session_id_from_request(
        request, request.cookies.get(settings.session_cookie_name), credentials
    )
    if session_id and invalidate_session(session_id):
        logger.info("Session ended")
    response = JSONResponse({"ok": True})
    response.delete_cookie(settings.session_cookie_name)
    return response
