import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import Settings
from ..constants import INSECURE_DEFAULT_SECRET

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "same-origin",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers for every response.

    API responses carry session and backup data, so they are marked
    ``no-store`` unless the route already chose its own caching policy.
    """

    def __init__(self, app, *, hsts: bool = False) -> None:
        super().__init__(app)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith("/api/"):
            response.headers.setdefault("Cache-Control", "no-store")
        # Set from configuration; behind a TLS proxy the request scheme reads http.
        if self.hsts:
            response.headers.setdefault("Strict-Transport-Security", HSTS_HEADER)
        return response


def log_security_warnings(settings: Settings) -> None:
    if settings.session_secret == INSECURE_DEFAULT_SECRET:
        logger.warning("Session secret is using the insecure default; set SESSION_SECRET in the environment.")
    if not settings.session_cookie_secure:
        logger.warning("Session cookie is not marked Secure; set SESSION_COOKIE_SECURE=true behind HTTPS.")
    if settings.app_env == "production" and settings.is_sqlite:
        logger.warning("Running in production on SQLite; backups and the live database share one disk.")
