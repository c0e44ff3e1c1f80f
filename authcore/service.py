"""Authentication and session lifecycle.

``AuthService`` composes the credential store, notifier, token codec,
password hasher and TOTP provider. It holds no per-request state: each
coroutine runs one operation to completion and either returns a value or
raises an ``AuthError`` subclass.

Account verification goes UNVERIFIED -> VERIFIED. Two-factor authentication
is an independent axis: DISABLED -> PENDING_SETUP (secret stored, flag off)
-> ENABLED -> DISABLED (secret wiped).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from .context import RequestContext
from .errors import (
    AlreadyVerifiedError,
    CodeExpiredError,
    CodeNotIssuedError,
    ConflictError,
    InvalidCodeError,
    InvalidCredentialsError,
    InvalidOtpError,
    NotFoundError,
    NotVerifiedError,
    PasswordReuseError,
    RefreshTokenExpiredError,
    TokenExpiredError,
    TokenInvalidError,
    TwoFactorAlreadyEnabledError,
    TwoFactorNotEnabledError,
    TwoFactorSetupNotInitiatedError,
)
from .models import LoginAttempt, User
from .models.base import utcnow
from .notifier import Notifier
from .security import PasswordHasher, TokenCodec, TokenPair, codes_match, generate_numeric_code
from .store import CredentialStore, LoginAttemptRecord, NewAccount
from .totp import TotpProvider

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100


@dataclass(frozen=True)
class SigninResult:
    """Outcome of a successful credential check.

    ``tokens`` is ``None`` when ``requires_otp`` is set: the caller must
    repeat the credentials together with a TOTP code.
    """

    user: User
    tokens: TokenPair | None = None
    requires_otp: bool = False


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    provisioning_uri: str
    qr_code: str


@dataclass(frozen=True)
class TwoFactorStatus:
    enabled: bool
    pending_setup: bool


class AuthService:
    def __init__(
        self,
        store: CredentialStore,
        notifier: Notifier,
        tokens: TokenCodec,
        hasher: PasswordHasher,
        totp: TotpProvider,
        code_ttl: timedelta = timedelta(minutes=15),
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.tokens = tokens
        self.hasher = hasher
        self.totp = totp
        self.code_ttl = code_ttl

    def _new_code(self) -> tuple[str, datetime]:
        return generate_numeric_code(), utcnow() + self.code_ttl

    async def _require_account(self, email: str) -> User:
        user = await self.store.get_by_email(email)
        if user is None:
            raise NotFoundError()
        return user

    async def _require_account_by_id(self, account_id: str) -> User:
        user = await self.store.get_by_id(account_id)
        if user is None:
            raise NotFoundError()
        return user

    async def _record_attempt(self, user: User, context: RequestContext, successful: bool) -> None:
        await self.store.record_login_attempt(
            LoginAttemptRecord(
                user_id=user.id,
                successful=successful,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                device=context.device.value,
            )
        )

    @staticmethod
    def _check_code(stored: str | None, expiry: datetime | None, submitted: str, now: datetime) -> None:
        """Validate a submitted one-time code against the stored pair."""

        if stored is None or expiry is None:
            raise CodeNotIssuedError()
        if not codes_match(stored, submitted):
            raise InvalidCodeError()
        if expiry <= now:
            raise CodeExpiredError()

    # ------------------------------------------------------------------
    # Signup and email verification
    # ------------------------------------------------------------------
    async def signup(self, first_name: str, last_name: str, email: str, password: str) -> User:
        """Register an unverified account and email it a verification code.

        The email goes out before anything is persisted: if delivery fails
        the ``DeliveryError`` propagates and no account is left behind.
        """

        if await self.store.get_by_email(email) is not None:
            raise ConflictError()

        password_hash = self.hasher.hash(password)
        code, expiry = self._new_code()
        await self.notifier.send_verification_code(email, first_name, code)

        user = await self.store.create_account(
            NewAccount(
                first_name=first_name,
                last_name=last_name,
                email=email,
                password_hash=password_hash,
                verification_code=code,
                code_expiry=expiry,
            )
        )
        logger.info(f"Account {user.id} registered, awaiting email verification")
        return user

    async def verify_email(self, email: str, code: str) -> User:
        user = await self._require_account(email)
        if user.is_verified:
            raise AlreadyVerifiedError()
        now = utcnow()
        self._check_code(user.verification_code, user.code_expiry, code, now)

        if not await self.store.consume_verification_code(user.id, code, now):
            # Another request consumed the code between our read and write
            logger.warning(f"Verification code for account {user.id} already consumed")
            raise InvalidCodeError()
        logger.info(f"Account {user.id} verified its email")
        return await self._require_account_by_id(user.id)

    async def resend_verification_code(self, email: str) -> None:
        user = await self._require_account(email)
        if user.is_verified:
            raise AlreadyVerifiedError()
        code, expiry = self._new_code()
        await self.notifier.send_verification_code(user.email, user.first_name, code)
        await self.store.set_verification_code(user.id, code, expiry)

    # ------------------------------------------------------------------
    # Password reset and change
    # ------------------------------------------------------------------
    async def forgot_password(self, email: str) -> None:
        user = await self._require_account(email)
        code, expiry = self._new_code()
        await self.notifier.send_password_reset_code(user.email, user.first_name, code)
        await self.store.set_reset_code(user.id, code, expiry)
        logger.info(f"Password reset requested for account {user.id}")

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        user = await self._require_account(email)
        now = utcnow()
        try:
            self._check_code(user.reset_password_code, user.reset_password_expiry, code, now)
        except CodeNotIssuedError as exc:
            raise CodeNotIssuedError("No password reset code has been issued") from exc
        except CodeExpiredError as exc:
            raise CodeExpiredError("Password reset code has expired") from exc
        except InvalidCodeError as exc:
            raise InvalidCodeError("Invalid password reset code") from exc

        password_hash = self.hasher.hash(new_password)
        if not await self.store.consume_reset_code(user.id, code, now, password_hash):
            logger.warning(f"Reset code for account {user.id} already consumed")
            raise InvalidCodeError("Invalid password reset code")
        logger.info(f"Password reset completed for account {user.id}")

    async def change_password(self, account_id: str, current_password: str, new_password: str) -> None:
        user = await self._require_account_by_id(account_id)
        if not self.hasher.verify(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")
        if current_password == new_password:
            raise PasswordReuseError()
        await self.store.update_password(user.id, self.hasher.hash(new_password))
        logger.info(f"Account {user.id} changed its password")

    # ------------------------------------------------------------------
    # Signin and tokens
    # ------------------------------------------------------------------
    async def _authenticate(self, email: str, password: str, context: RequestContext) -> User:
        """Shared credential check for both signin steps."""

        user = await self.store.get_by_email(email)
        if user is None:
            # Same work and same error as a wrong password
            self.hasher.dummy_verify()
            raise InvalidCredentialsError()

        if not self.hasher.verify(password, user.password_hash):
            await self._record_attempt(user, context, successful=False)
            logger.info(f"Failed signin for account {user.id}: wrong password")
            raise InvalidCredentialsError()

        if not user.is_verified:
            await self._record_attempt(user, context, successful=False)
            raise NotVerifiedError()
        return user

    async def signin(self, email: str, password: str, context: RequestContext) -> SigninResult:
        user = await self._authenticate(email, password, context)
        if user.totp_enabled:
            # The attempt is recorded once the second factor is checked
            return SigninResult(user=user, requires_otp=True)

        await self._record_attempt(user, context, successful=True)
        return SigninResult(user=user, tokens=self.tokens.issue_pair(user.id, user.role))

    async def signin_2fa(
        self, email: str, password: str, code: str | None, context: RequestContext
    ) -> SigninResult:
        user = await self._authenticate(email, password, context)
        if user.totp_enabled:
            if not code:
                await self._record_attempt(user, context, successful=False)
                raise InvalidOtpError("Two-factor authentication code is required")
            if not self.totp.verify_code(code, user.totp_secret):
                await self._record_attempt(user, context, successful=False)
                logger.info(f"Failed 2FA signin for account {user.id}")
                raise InvalidOtpError()

        await self._record_attempt(user, context, successful=True)
        return SigninResult(user=user, tokens=self.tokens.issue_pair(user.id, user.role))

    async def refresh_access_token(self, refresh_token: str) -> str:
        """Mint a new access token; the refresh token itself is not rotated."""

        try:
            claims = self.tokens.verify_refresh_token(refresh_token)
        except TokenExpiredError as exc:
            raise RefreshTokenExpiredError() from exc
        except TokenInvalidError as exc:
            raise TokenInvalidError("Invalid refresh token") from exc
        return self.tokens.issue_access_token(claims.account_id, claims.role)

    async def login_history(self, account_id: str, limit: int = 10) -> Sequence[LoginAttempt]:
        limit = max(1, min(limit, MAX_HISTORY_LIMIT))
        return await self.store.list_login_attempts(account_id, limit)

    # ------------------------------------------------------------------
    # Two-factor authentication
    # ------------------------------------------------------------------
    async def setup_2fa(self, account_id: str) -> TwoFactorSetup:
        """Store a fresh unconfirmed secret, replacing any pending one."""

        user = await self._require_account_by_id(account_id)
        if user.totp_enabled:
            raise TwoFactorAlreadyEnabledError()

        generated = self.totp.generate_secret(user.email)
        if not await self.store.store_pending_totp_secret(user.id, generated.secret):
            # 2FA was confirmed concurrently
            raise TwoFactorAlreadyEnabledError()
        logger.info(f"2FA setup started for account {user.id}")
        return TwoFactorSetup(
            secret=generated.secret,
            provisioning_uri=generated.provisioning_uri,
            qr_code=self.totp.render_provisioning_image(generated.provisioning_uri),
        )

    async def verify_2fa(self, account_id: str, code: str) -> None:
        user = await self._require_account_by_id(account_id)
        if user.totp_enabled:
            raise TwoFactorAlreadyEnabledError()
        if not user.totp_secret:
            raise TwoFactorSetupNotInitiatedError()
        if not self.totp.verify_code(code, user.totp_secret):
            raise InvalidOtpError()
        if not await self.store.enable_totp(user.id, user.totp_secret):
            # Secret replaced by a new setup, or already enabled
            raise InvalidOtpError()
        logger.info(f"2FA enabled for account {user.id}")

    async def disable_2fa(self, account_id: str, code: str) -> None:
        user = await self._require_account_by_id(account_id)
        if not user.totp_enabled:
            raise TwoFactorNotEnabledError()
        if not self.totp.verify_code(code, user.totp_secret):
            raise InvalidOtpError()
        if not await self.store.disable_totp(user.id):
            raise TwoFactorNotEnabledError()
        logger.info(f"2FA disabled for account {user.id}")

    async def two_factor_status(self, account_id: str) -> TwoFactorStatus:
        user = await self._require_account_by_id(account_id)
        return TwoFactorStatus(
            enabled=user.totp_enabled,
            pending_setup=bool(user.totp_secret) and not user.totp_enabled,
        )
