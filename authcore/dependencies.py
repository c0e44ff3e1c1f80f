"""Reusable FastAPI dependencies."""
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .context import RequestContext
from .errors import ForbiddenError
from .security import TokenClaims
from .service import AuthService

# Use simple Bearer auth instead of OAuth2 password flow
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Return the service wired up at application start."""

    return request.app.state.auth_service


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    service: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """
    Return the claims of the access token taken from the
    Authorization: Bearer <token> header.

    Role travels in the token, so no store lookup is needed here.
    """

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ForbiddenError()

    # TokenExpiredError and TokenInvalidError map to 401 via the error handlers
    return service.tokens.verify_access_token(credentials.credentials)
