"""
Security Headers Middleware for the Barangay Portal.

Adds security headers to all responses following OWASP guidelines.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: Prevent MIME sniffing
    - X-Frame-Options: Prevent clickjacking
    - Referrer-Policy: Control referrer information
    - Content-Security-Policy: HTML responses only (printable case views)
    - Strict-Transport-Security: Force HTTPS (production only)
    """

    def __init__(
        self,
        app,
        enable_hsts: bool = False,
        hsts_max_age: int = 31536000,  # 1 year
        csp_policy: str | None = None,
        frame_options: str = "SAMEORIGIN",
    ):
        super().__init__(app)
        self.enable_hsts = enable_hsts
        self.hsts_max_age = hsts_max_age
        self.frame_options = frame_options
        self.csp_policy = csp_policy or self._default_csp()

    def _default_csp(self) -> str:
        """
        Printable views carry inline styles and an inline print button
        handler; everything else is same-origin.
        """
        return "; ".join([
            "default-src 'self'",
            "script-src 'self' 'unsafe-inline'",
            "style-src 'self' 'unsafe-inline'",
            "img-src 'self' data:",
            "frame-ancestors 'self'",
            "form-action 'self'",
            "base-uri 'self'",
        ])

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = self.frame_options
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        content_type = response.headers.get("Content-Type", "")
        if "text/html" in content_type:
            response.headers["Content-Security-Policy"] = self.csp_policy

        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = (
                f"max-age={self.hsts_max_age}; includeSubDomains"
            )

        # Case data is personal; never cache API reads
        if request.url.path.startswith("/api/") and request.method in ("GET", "HEAD"):
            response.headers.setdefault("Cache-Control", "private, no-store")

        return response
