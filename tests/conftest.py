"""Test fixtures for the backend."""
import os
import time
from dataclasses import dataclass, field

import pyotp
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")

from authcore.config import Settings  # noqa: E402
from authcore.context import RequestContext  # noqa: E402
from authcore.errors import DeliveryError  # noqa: E402
from authcore.main import create_app  # noqa: E402
from authcore.service import AuthService  # noqa: E402

PASSWORD = "Str0ng!Pass"


def wrong_totp_code(secret: str) -> str:
    """A code no step near now accepts, including the next step if the clock ticks over."""

    totp = pyotp.TOTP(secret)
    now = time.time()
    accepted = {totp.at(now + 30 * offset) for offset in (-1, 0, 1, 2)}
    return next(c for c in ("000000", "111111", "222222", "333333", "444444") if c not in accepted)


@dataclass
class SentEmail:
    purpose: str
    email: str
    name: str
    code: str


@dataclass
class RecordingNotifier:
    """Stands in for SMTP and keeps every code it was asked to send."""

    sent: list[SentEmail] = field(default_factory=list)
    fail: bool = False

    async def _send(self, purpose: str, email: str, name: str, code: str) -> None:
        if self.fail:
            raise DeliveryError("SMTP configuration missing")
        self.sent.append(SentEmail(purpose, email, name, code))

    async def send_verification_code(self, email: str, name: str, code: str) -> None:
        await self._send("verification", email, name, code)

    async def send_password_reset_code(self, email: str, name: str, code: str) -> None:
        await self._send("password_reset", email, name, code)

    def last_code(self, purpose: str = "verification") -> str:
        return [m for m in self.sent if m.purpose == purpose][-1].code


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret="test-access-secret",
        jwt_refresh_secret="test-refresh-secret",
        password_hash_rounds=1000,
        email_backend="console",
        rate_limit_enabled=False,
        log_level="WARNING",
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def app(settings: Settings, notifier: RecordingNotifier):
    """An application on a fresh in-memory database."""

    application = create_app(settings, notifier=notifier)
    database = application.state.database
    await database.create_all()
    yield application
    await database.dispose()


@pytest.fixture
def service(app) -> AuthService:
    return app.state.auth_service


@pytest.fixture
def request_context() -> RequestContext:
    return RequestContext(
        ip_address="203.0.113.7",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    )


@pytest_asyncio.fixture
async def client(app) -> AsyncClient:
    """Provide an HTTP client for integration tests."""

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def verified_user(service: AuthService, notifier: RecordingNotifier):
    """A signed-up account that has confirmed its email."""

    user = await service.signup("Ada", "Lovelace", "ada@x.com", PASSWORD)
    await service.verify_email("ada@x.com", notifier.last_code())
    return user
