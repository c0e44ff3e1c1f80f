"""Append-only audit trail of signin attempts."""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class LoginAttempt(Base):
    """One signin attempt against a known account, successful or not."""

    __tablename__ = "login_history"

    __table_args__ = (
        Index("ix_login_history_user_time", "user_id", "login_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    device: Mapped[str] = mapped_column(String(16), default="unknown")
    successful: Mapped[bool] = mapped_column(Boolean, default=False)
    login_time: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<LoginAttempt {self.user_id} ok={self.successful} at {self.login_time}>"
