"""Pydantic schemas used across the backend API."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel

from . import validation


class CamelModel(BaseModel):
    """Base schema speaking camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SignupRequest(CamelModel):
    """Payload for account registration."""

    first_name: str
    last_name: str
    email: EmailStr
    password: str

    @field_validator("first_name")
    @classmethod
    def _first_name(cls, value: str) -> str:
        return validation.check_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def _last_name(cls, value: str) -> str:
        return validation.check_name(value, "Last name")

    @field_validator("email")
    @classmethod
    def _email_domain(cls, value: str) -> str:
        return validation.check_email_domain(value)

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        return validation.check_password_strength(value)


class SigninRequest(CamelModel):
    """Credentials supplied during signin."""

    email: EmailStr
    password: str

    @field_validator("password")
    @classmethod
    def _password_present(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        if len(value) > validation.MAX_PASSWORD_LENGTH:
            raise ValueError("Password exceeds maximum length")
        return value


class Signin2FARequest(SigninRequest):
    token: str | None = None


class RefreshTokenRequest(CamelModel):
    refresh_token: str


class EmailRequest(CamelModel):
    email: EmailStr


class VerifyEmailRequest(EmailRequest):
    code: str

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        return validation.check_code(value)


class ResetPasswordRequest(VerifyEmailRequest):
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _new_password(cls, value: str) -> str:
        return validation.check_password_strength(value)


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def _new_password(cls, value: str) -> str:
        return validation.check_password_strength(value)


class OtpRequest(CamelModel):
    """A TOTP code submitted for 2FA confirmation or disabling."""

    token: str

    @field_validator("token")
    @classmethod
    def _token(cls, value: str) -> str:
        return validation.check_code(value)


class AccountRead(CamelModel):
    """Public representation of an account; never carries secrets."""

    id: str
    first_name: str
    last_name: str
    email: EmailStr
    role: str
    is_verified: bool
    totp_enabled: bool
    created_at: datetime | None = None


class TokenPairRead(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenRead(CamelModel):
    access_token: str
    token_type: str = "bearer"


class TwoFactorSetupRead(CamelModel):
    secret: str
    qr_code: str
    otpauth_url: str


class TwoFactorStatusRead(CamelModel):
    enabled: bool
    pending_setup: bool


class LoginAttemptRead(CamelModel):
    id: int
    ip_address: str | None = None
    user_agent: str | None = None
    device: str
    successful: bool
    login_time: datetime


def dump(model: BaseModel) -> dict:
    """Serialise a schema the way it goes out on the wire."""

    return model.model_dump(mode="json", by_alias=True)
