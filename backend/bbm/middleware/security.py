"""Security headers and secure cookies."""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bbm.config import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=()"
        )

        return response


class SecureCookieMiddleware(BaseHTTPMiddleware):
    """Force Secure/HttpOnly on cookies in production."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        if settings.environment == "production":
            set_cookie_headers = response.headers.getlist("set-cookie")
            if set_cookie_headers:
                del response.headers["set-cookie"]

                for cookie in set_cookie_headers:
                    if "Secure" not in cookie:
                        cookie += "; Secure"
                    if "HttpOnly" not in cookie:
                        cookie += "; HttpOnly"

                    response.headers.append("set-cookie", cookie)

        return response
