"""Application settings and configuration helpers."""
from functools import lru_cache
import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime configuration loaded from environment variables."""

    database_url: str = Field(
        default="sqlite+aiosqlite:///./authcore.db", alias="DATABASE_URL"
    )
    database_auto_create: bool = Field(default=True, alias="DATABASE_AUTO_CREATE")

    # Signing secrets have no default: the app refuses to start without them.
    jwt_secret: str = Field(default="", alias="JWT_SECRET")
    jwt_refresh_secret: str = Field(default="", alias="JWT_REFRESH_SECRET")
    access_token_expires_minutes: int = Field(default=20, alias="ACCESS_TOKEN_EXPIRES_MINUTES")
    refresh_token_expires_days: int = Field(default=7, alias="REFRESH_TOKEN_EXPIRES_DAYS")

    password_hash_rounds: int = Field(default=29000, alias="PASSWORD_HASH_ROUNDS")
    code_expires_minutes: int = Field(default=15, alias="CODE_EXPIRES_MINUTES")
    totp_issuer: str = Field(default="Khaled", alias="TOTP_ISSUER")

    email_backend: str = Field(default="smtp", alias="EMAIL_BACKEND")
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    email_from: str | None = Field(default=None, alias="EMAIL_FROM")
    email_from_name: str = Field(default="Khaled", alias="EMAIL_FROM_NAME")

    rate_limit_enabled: bool = Field(default=True, alias="RATE_LIMIT_ENABLED")
    # Only behind a proxy that overwrites X-Forwarded-For
    trust_proxy: bool = Field(default=False, alias="TRUST_PROXY")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    defaults = Settings.model_fields
    return Settings(
        database_url=os.getenv("DATABASE_URL", defaults["database_url"].default),
        database_auto_create=_env_bool("DATABASE_AUTO_CREATE", True),
        jwt_secret=os.getenv("JWT_SECRET", ""),
        jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", ""),
        access_token_expires_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRES_MINUTES", "20")),
        refresh_token_expires_days=int(os.getenv("REFRESH_TOKEN_EXPIRES_DAYS", "7")),
        password_hash_rounds=int(
            os.getenv("PASSWORD_HASH_ROUNDS", str(defaults["password_hash_rounds"].default))
        ),
        code_expires_minutes=int(os.getenv("CODE_EXPIRES_MINUTES", "15")),
        totp_issuer=os.getenv("TOTP_ISSUER", defaults["totp_issuer"].default),
        email_backend=os.getenv("EMAIL_BACKEND", "smtp").lower(),
        smtp_host=os.getenv("SMTP_HOST", defaults["smtp_host"].default),
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        smtp_user=os.getenv("SMTP_USER"),
        smtp_password=os.getenv("SMTP_PASSWORD"),
        email_from=os.getenv("EMAIL_FROM", os.getenv("SMTP_USER")),
        email_from_name=os.getenv("EMAIL_FROM_NAME", defaults["email_from_name"].default),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
        trust_proxy=_env_bool("TRUST_PROXY", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
