"""
Security headers added to every HTTP response.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


@dataclass(frozen=True)
class SecurityHeadersConfig:
    content_security_policy: Optional[str] = None
    disable_frame_options: bool = False
    disable_xss_protection: bool = False
    hsts_max_age: Optional[int] = None
    csp_directives: Dict[str, str] = field(
        default_factory=lambda: {
            "default-src": "'self'",
            "script-src": "'self'",
            "style-src": "'self' 'unsafe-inline'",
            "img-src": "'self' data: https:",
            "connect-src": "'self'",
            "object-src": "'none'",
            "frame-ancestors": "'none'",
            "base-uri": "'self'",
        }
    )


def get_security_headers(config: Optional[SecurityHeadersConfig] = None) -> Dict[str, str]:
    """Build the security headers for a response."""
    cfg = config or SecurityHeadersConfig()

    csp = cfg.content_security_policy or "; ".join(
        f"{name} {value}" for name, value in cfg.csp_directives.items()
    )

    headers = {
        "Content-Security-Policy": csp,
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    }

    if not cfg.disable_frame_options:
        headers["X-Frame-Options"] = "DENY"

    if not cfg.disable_xss_protection:
        headers["X-XSS-Protection"] = "1; mode=block"

    if cfg.hsts_max_age:
        headers["Strict-Transport-Security"] = f"max-age={cfg.hsts_max_age}; includeSubDomains"

    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the security headers without overwriting ones a route already set."""

    def __init__(self, app, config: Optional[SecurityHeadersConfig] = None):
        super().__init__(app)
        self.headers = get_security_headers(config)

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
