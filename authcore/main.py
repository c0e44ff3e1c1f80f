"""FastAPI application entry point.

Run with ``uvicorn --factory authcore.main:create_app``.
"""
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request

from .auth import router as auth_router
from .config import Settings, get_settings
from .database import Database
from .errors import register_exception_handlers
from .notifier import Notifier, build_notifier
from .ratelimit import RateLimiter
from .routers.two_factor import router as two_factor_router
from .security import PasswordHasher, TokenCodec
from .service import AuthService
from .store import SqlAlchemyCredentialStore
from .totp import TotpProvider

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, notifier: Notifier | None = None) -> FastAPI:
    """Wire the database, store, codecs and service into a FastAPI app.

    Token secrets are checked here, so a missing ``JWT_SECRET`` or
    ``JWT_REFRESH_SECRET`` stops the process before it serves a request.
    """

    settings = settings or get_settings()
    configure_logging(settings.log_level)

    database = Database(settings.database_url)
    tokens = TokenCodec(
        settings.jwt_secret,
        settings.jwt_refresh_secret,
        access_ttl=timedelta(minutes=settings.access_token_expires_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_expires_days),
    )
    service = AuthService(
        store=SqlAlchemyCredentialStore(database),
        notifier=notifier or build_notifier(settings),
        tokens=tokens,
        hasher=PasswordHasher(settings.password_hash_rounds),
        totp=TotpProvider(settings.totp_issuer),
        code_ttl=timedelta(minutes=settings.code_expires_minutes),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Ensure database tables exist, and release connections on shutdown."""

        if settings.database_auto_create:
            await database.create_all()
        logger.info("Auth backend started")
        yield
        await database.dispose()
        logger.info("Auth backend stopped")

    app = FastAPI(title="Auth Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.state.auth_service = service
    app.state.rate_limiter = RateLimiter(
        enabled=settings.rate_limit_enabled, trust_proxy=settings.trust_proxy
    )

    register_exception_handlers(app)

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.include_router(auth_router)
    app.include_router(two_factor_router)

    @app.get("/health", tags=["system"])
    async def healthcheck() -> dict[str, str]:
        """Simple readiness probe for uptime checks."""

        return {"status": "ok"}

    return app

