"""
Security Headers Middleware for FastAPI

Adds security headers to every response. The API mostly serves JSON, plus the
server-rendered QR tracking page, which needs inline styles and data: images.
"""

import logging
import os
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
FRONTEND_ORIGINS = os.getenv(
    "FRONTEND_ORIGINS", f"{FRONTEND_URL},https://tradesbook.ie,https://www.tradesbook.ie"
)

# Paths that render HTML rather than JSON
HTML_PATH_PREFIXES = ("/qr-tracking/",)


def get_csp_policy(html_page: bool = False) -> str:
    """
    Content-Security-Policy header value.

    JSON responses get a locked-down policy; the tracking page additionally
    allows its inline stylesheet and the embedded QR image.
    """
    frame_ancestors = " ".join(o.strip() for o in FRONTEND_ORIGINS.split(",") if o.strip())

    if html_page:
        directives = [
            "default-src 'none'",
            "style-src 'unsafe-inline'",
            "img-src 'self' data: https:",
            f"frame-ancestors {frame_ancestors}",
            "base-uri 'none'",
            "form-action 'none'",
        ]
    else:
        directives = [
            "default-src 'none'",
            f"frame-ancestors {frame_ancestors}",
            "base-uri 'none'",
            "form-action 'none'",
        ]
    return "; ".join(directives)


def get_permissions_policy() -> str:
    features = [
        "accelerometer=()",
        "camera=()",
        "geolocation=()",
        "gyroscope=()",
        "magnetometer=()",
        "microphone=()",
        "payment=()",
        "usb=()",
    ]
    return ", ".join(features)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds security headers to all responses.

    Headers added:
    - X-Frame-Options: SAMEORIGIN
    - X-Content-Type-Options: nosniff
    - Referrer-Policy: strict-origin-when-cross-origin
    - Content-Security-Policy
    - Strict-Transport-Security (production only)
    - Permissions-Policy
    - Cache-Control: no-store (unless the route set its own)
    """

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        html_page = path.startswith(HTML_PATH_PREFIXES)

        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = get_csp_policy(html_page)
        response.headers["Permissions-Policy"] = get_permissions_policy()
        response.headers["X-Permitted-Cross-Domain-Policies"] = "none"

        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"

        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        return response
