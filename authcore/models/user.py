"""User account model, including pending codes and the TOTP secret."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UserRole:
    USER = "user"
    ADMIN = "admin"


class User(TimestampMixin, Base):
    """Identity record for a person who can sign in."""

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "(verification_code IS NULL) = (code_expiry IS NULL)",
            name="verification_code_pair",
        ),
        CheckConstraint(
            "(reset_password_code IS NULL) = (reset_password_expiry IS NULL)",
            name="reset_code_pair",
        ),
        CheckConstraint(
            "NOT totp_enabled OR totp_secret IS NOT NULL",
            name="totp_enabled_has_secret",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(50))
    last_name: Mapped[str] = mapped_column(String(50))
    password_hash: Mapped[str] = mapped_column(String)
    role: Mapped[str] = mapped_column(String(16), default=UserRole.USER)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False)

    verification_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    code_expiry: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reset_password_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    reset_password_expiry: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    totp_secret: Mapped[str | None] = mapped_column(String(64), nullable=True)
    totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
