"""Per-endpoint, per-client fixed-window rate limiting for the HTTP layer."""
from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from fastapi import Request

from .errors import RateLimitedError

FIFTEEN_MINUTES = 15 * 60


@dataclass
class _Window:
    started_at: float
    expires_at: float
    count: int = 0


def client_address(request: Request, trust_proxy: bool = False) -> str:
    """Address the limiter counts against.

    ``X-Forwarded-For`` is client controlled, so it is only honoured when the
    service runs behind a proxy that overwrites it (``TRUST_PROXY``).
    """

    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "anonymous"


class RateLimiter:
    """Counts requests per (endpoint, client) inside a fixed time window."""

    def __init__(
        self,
        enabled: bool = True,
        trust_proxy: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.enabled = enabled
        self.trust_proxy = trust_proxy
        self._clock = clock
        self._windows: dict[tuple[str, str], _Window] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    async def hit(self, scope: str, client: str, limit: int, window_seconds: int) -> bool:
        """Register one request; return ``False`` once ``limit`` is exceeded."""

        if not self.enabled:
            return True
        now = self._clock()
        key = (scope, client)
        async with self._lock:
            self._prune(now)
            window = self._windows.get(key)
            if window is None:
                window = _Window(started_at=now, expires_at=now + window_seconds)
                self._windows[key] = window
            window.count += 1
            return window.count <= limit

    def _prune(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if window.expires_at <= now]
        for key in expired:
            del self._windows[key]

    def reset(self) -> None:
        self._windows.clear()


def rate_limit(scope: str, limit: int, message: str, window_seconds: int = FIFTEEN_MINUTES):
    """Build a dependency enforcing ``limit`` requests per window on one endpoint."""

    async def dependency(request: Request) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        client = client_address(request, limiter.trust_proxy)
        if not await limiter.hit(scope, client, limit, window_seconds):
            raise RateLimitedError(message)

    return dependency


signup_limit = rate_limit("signup", 5, "Too many signup attempts, please try again later")
signin_limit = rate_limit("signin", 5, "Too many signin attempts, please try again later")
refresh_token_limit = rate_limit("refresh-token", 50, "Too many requests, please try again later")
verify_email_limit = rate_limit(
    "verify-email", 10, "Too many verification attempts, please try again later"
)
resend_verification_limit = rate_limit(
    "resend-verification", 3, "Too many resend attempts, please try again later"
)
forgot_password_limit = rate_limit(
    "forgot-password", 3, "Too many forgot password attempts, please try again later"
)
reset_password_limit = rate_limit(
    "reset-password", 3, "Too many reset password attempts, please try again later"
)
signin_2fa_limit = rate_limit("signin-2fa", 5, "Too many 2FA login attempts, please try again later")
setup_2fa_limit = rate_limit("2fa-setup", 3, "Too many 2FA setup attempts, please try again later")
verify_2fa_limit = rate_limit(
    "2fa-verify", 5, "Too many 2FA verification attempts, please try again later"
)
disable_2fa_limit = rate_limit(
    "2fa-disable", 3, "Too many 2FA disable attempts, please try again later"
)
two_factor_status_limit = rate_limit(
    "2fa-status", 50, "Too many status check attempts, please try again later"
)
change_password_limit = rate_limit(
    "change-password", 10, "Too many password change attempts, please try again later"
)
login_history_limit = rate_limit(
    "login-history", 50, "Too many login history requests, please try again later"
)
