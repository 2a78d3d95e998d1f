"""
Maintenance Mode Middleware for the Barangay Portal.

While `system_settings.maintenanceMode` is on, only administrators and a
short whitelist of paths get through. The flag is cached for a few seconds
so the database isn't hit on every request.
"""

import logging
import threading
import time
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from barangay.core.config import get_settings
from barangay.core.database import SYSTEM_SETTINGS, get_database
from barangay.core.errors import MaintenanceModeError, error_response
from barangay.core.security import get_session, get_session_id_from_request, security_bearer
from barangay.core.user_context import Authorizer

logger = logging.getLogger(__name__)

WHITELIST = (
    "/maintenance",
    "/api/settings",
    "/api/me",
    "/health",
    "/favicon.ico",
)

MAINTENANCE_PAGE = """<!doctype html>
<html>
  <head><meta charset="utf-8"><title>Under Maintenance</title></head>
  <body style="font-family: Arial, sans-serif; text-align: center; padding: 60px;">
    <h1>We'll be back soon</h1>
    <p>The barangay portal is under maintenance. Please try again later.</p>
  </body>
</html>"""


def load_maintenance_flag() -> bool:
    doc = get_database()[SYSTEM_SETTINGS].find_one({}, {"maintenanceMode": 1})
    return bool(doc and doc.get("maintenanceMode"))


class MaintenanceFlagCache:
    """Tiny TTL cache in front of the maintenance flag loader."""

    def __init__(self, loader: Callable[[], bool], ttl: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        self._value = False
        self._fetched_at: Optional[float] = None
        self._lock = threading.Lock()

    def get(self) -> bool:
        with self._lock:
            now = self._clock()
            if self._fetched_at is None or now - self._fetched_at > self._ttl:
                self._value = self._loader()
                self._fetched_at = now
            return self._value

    def invalidate(self) -> None:
        """Bust the cache after the setting changes."""
        with self._lock:
            self._fetched_at = None


maintenance_flag = MaintenanceFlagCache(load_maintenance_flag, ttl=get_settings().maintenance_cache_ttl)


def invalidate() -> None:
    maintenance_flag.invalidate()


async def _is_admin_request(request: Request) -> bool:
    cookie_value = request.cookies.get(get_settings().session_cookie_name)
    credentials = await security_bearer(request)
    session_id = get_session_id_from_request(request, cookie_value, credentials)
    if not session_id:
        return False
    session = get_session(session_id)
    return session is not None and Authorizer.is_admin(session.to_context())


class MaintenanceModeMiddleware(BaseHTTPMiddleware):
    """Serve a maintenance page (HTML) or 503 JSON to non-admins while maintenance is on."""

    def __init__(self, app, cache: Optional[MaintenanceFlagCache] = None):
        super().__init__(app)
        self.cache = cache or maintenance_flag

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            on = await run_in_threadpool(self.cache.get)
        except Exception:
            # Fail open: a settings read problem must not lock everyone out
            logger.warning("Could not read maintenance flag; letting request through", exc_info=True)
            on = False

        if not on or await _is_admin_request(request):
            return await call_next(request)

        if any(request.url.path.startswith(prefix) for prefix in WHITELIST):
            return await call_next(request)

        wants_html = "text/html" in request.headers.get("accept", "")
        if wants_html and request.method == "GET":
            return HTMLResponse(MAINTENANCE_PAGE, status_code=503)
        return error_response(503, MaintenanceModeError.default_message)
