"""
Middleware for operator context and response hardening
"""
from fastapi import Request, status
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from backoffice.core.config import settings

logger = logging.getLogger(__name__)


class OperatorContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that extracts the acting back-office user from the
    X-Admin-User-ID header and sets it on request.state.

    The header is optional: endpoints that need an operator (cash register
    sessions, invoicing) enforce it through get_operator_id.
    """

    HEADER_NAME = "X-Admin-User-ID"

    async def dispatch(self, request: Request, call_next):
        request.state.admin_user_id = None

        # Skip for OPTIONS requests (CORS preflight)
        if request.method == "OPTIONS":
            return await call_next(request)

        raw_value = request.headers.get(self.HEADER_NAME)
        if raw_value is not None and raw_value.strip():
            try:
                admin_user_id = int(raw_value.strip())
                if admin_user_id <= 0:
                    raise ValueError(raw_value)
            except ValueError:
                return Response(
                    content='{"detail":"Invalid X-Admin-User-ID header. Must be a positive integer"}',
                    status_code=status.HTTP_400_BAD_REQUEST,
                    media_type="application/json"
                )
            request.state.admin_user_id = admin_user_id
            logger.debug(f"Request to {request.url.path} by admin_user_id: {admin_user_id}")

        return await call_next(request)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds hardening headers to every response.
    HSTS is only sent in production, where the API sits behind TLS.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
