"""Persistence contract of the auth core and its SQLAlchemy implementation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from .database import Database
from .errors import ConflictError
from .models import LoginAttempt, User, UserRole
from .models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass
class NewAccount:
    """Fields required to persist a freshly signed-up account."""

    first_name: str
    last_name: str
    email: str
    password_hash: str
    verification_code: str
    code_expiry: datetime
    role: str = UserRole.USER


@dataclass
class LoginAttemptRecord:
    user_id: str
    successful: bool
    ip_address: str | None = None
    user_agent: str | None = None
    device: str = "unknown"
    login_time: datetime = field(default_factory=utcnow)


class CredentialStore(Protocol):
    """The narrow persistence interface the auth service depends on.

    The ``consume_*``, ``enable_totp`` and ``disable_totp`` methods are
    conditional: they return ``True`` only when they changed the row, so at
    most one concurrent caller can win.
    """

    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_id(self, account_id: str) -> User | None: ...

    async def create_account(self, account: NewAccount) -> User: ...

    async def set_verification_code(self, account_id: str, code: str, expiry: datetime) -> None: ...

    async def consume_verification_code(self, account_id: str, code: str, now: datetime) -> bool: ...

    async def set_reset_code(self, account_id: str, code: str, expiry: datetime) -> None: ...

    async def consume_reset_code(
        self, account_id: str, code: str, now: datetime, password_hash: str
    ) -> bool: ...

    async def update_password(self, account_id: str, password_hash: str) -> None: ...

    async def store_pending_totp_secret(self, account_id: str, secret: str) -> bool: ...

    async def enable_totp(self, account_id: str, secret: str) -> bool: ...

    async def disable_totp(self, account_id: str) -> bool: ...

    async def record_login_attempt(self, attempt: LoginAttemptRecord) -> None: ...

    async def list_login_attempts(self, account_id: str, limit: int) -> Sequence[LoginAttempt]: ...


class SqlAlchemyCredentialStore:
    """``CredentialStore`` backed by the async SQLAlchemy session factory."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def get_by_email(self, email: str) -> User | None:
        async with self.database.session() as session:
            result = await session.execute(
                select(User).where(func.lower(User.email) == email.strip().lower())
            )
            return result.scalar_one_or_none()

    async def get_by_id(self, account_id: str) -> User | None:
        async with self.database.session() as session:
            return await session.get(User, account_id)

    async def create_account(self, account: NewAccount) -> User:
        user = User(
            first_name=account.first_name,
            last_name=account.last_name,
            email=account.email,
            password_hash=account.password_hash,
            role=account.role,
            is_verified=False,
            verification_code=account.verification_code,
            code_expiry=account.code_expiry,
        )
        async with self.database.session() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ConflictError() from exc
            await session.refresh(user)
        return user

    async def _update(self, *criteria, **values) -> bool:
        """Run one conditional UPDATE on ``users`` and report whether a row changed."""

        values.setdefault("updated_at", utcnow())
        async with self.database.session() as session:
            result = await session.execute(
                update(User)
                .where(*criteria)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def set_verification_code(self, account_id: str, code: str, expiry: datetime) -> None:
        await self._update(User.id == account_id, verification_code=code, code_expiry=expiry)

    async def consume_verification_code(self, account_id: str, code: str, now: datetime) -> bool:
        return await self._update(
            User.id == account_id,
            User.is_verified.is_(False),
            User.verification_code == code,
            User.code_expiry > now,
            is_verified=True,
            verification_code=None,
            code_expiry=None,
        )

    async def set_reset_code(self, account_id: str, code: str, expiry: datetime) -> None:
        await self._update(
            User.id == account_id, reset_password_code=code, reset_password_expiry=expiry
        )

    async def consume_reset_code(
        self, account_id: str, code: str, now: datetime, password_hash: str
    ) -> bool:
        return await self._update(
            User.id == account_id,
            User.reset_password_code == code,
            User.reset_password_expiry > now,
            password_hash=password_hash,
            reset_password_code=None,
            reset_password_expiry=None,
        )

    async def update_password(self, account_id: str, password_hash: str) -> None:
        await self._update(User.id == account_id, password_hash=password_hash)

    async def store_pending_totp_secret(self, account_id: str, secret: str) -> bool:
        return await self._update(
            User.id == account_id,
            User.totp_enabled.is_(False),
            totp_secret=secret,
        )

    async def enable_totp(self, account_id: str, secret: str) -> bool:
        return await self._update(
            User.id == account_id,
            User.totp_enabled.is_(False),
            User.totp_secret == secret,
            totp_enabled=True,
        )

    async def disable_totp(self, account_id: str) -> bool:
        return await self._update(
            User.id == account_id,
            User.totp_enabled.is_(True),
            totp_enabled=False,
            totp_secret=None,
        )

    async def record_login_attempt(self, attempt: LoginAttemptRecord) -> None:
        async with self.database.session() as session:
            session.add(
                LoginAttempt(
                    user_id=attempt.user_id,
                    successful=attempt.successful,
                    ip_address=attempt.ip_address,
                    user_agent=attempt.user_agent,
                    device=attempt.device,
                    login_time=attempt.login_time,
                )
            )
            await session.commit()

    async def list_login_attempts(self, account_id: str, limit: int) -> Sequence[LoginAttempt]:
        async with self.database.session() as session:
            result = await session.execute(
                select(LoginAttempt)
                .where(LoginAttempt.user_id == account_id)
                .order_by(LoginAttempt.login_time.desc(), LoginAttempt.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
