"""Authentication routes: signup, signin, tokens, verification and passwords."""
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from . import ratelimit
from .context import RequestContext
from .dependencies import get_auth_service, get_current_claims, get_request_context
from .errors import envelope
from .schemas import (
    AccessTokenRead,
    AccountRead,
    ChangePasswordRequest,
    EmailRequest,
    LoginAttemptRead,
    RefreshTokenRequest,
    ResetPasswordRequest,
    Signin2FARequest,
    SigninRequest,
    SignupRequest,
    TokenPairRead,
    VerifyEmailRequest,
    dump,
)
from .security import TokenClaims
from .service import AuthService, SigninResult

router = APIRouter(prefix="/auth", tags=["auth"])


def _signin_payload(result: SigninResult) -> dict:
    data = {"user": dump(AccountRead.model_validate(result.user))}
    if result.tokens is not None:
        data.update(
            dump(
                TokenPairRead(
                    access_token=result.tokens.access_token,
                    refresh_token=result.tokens.refresh_token,
                )
            )
        )
    return data


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(ratelimit.signup_limit)],
)
async def signup(
    payload: SignupRequest, service: AuthService = Depends(get_auth_service)
) -> JSONResponse:
    """Create an unverified account and email it a verification code."""

    user = await service.signup(
        payload.first_name, payload.last_name, payload.email, payload.password
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=envelope(
            201,
            "User registered successfully. Please check your email for the verification code",
            {"user": dump(AccountRead.model_validate(user))},
        ),
    )


@router.post("/signin", dependencies=[Depends(ratelimit.signin_limit)])
async def signin(
    payload: SigninRequest,
    context: RequestContext = Depends(get_request_context),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    """Authenticate with email and password.

    Accounts with 2FA enabled get ``requiresOtp`` and no tokens; they finish
    through ``/auth/signin/2fa``.
    """

    result = await service.signin(payload.email, payload.password, context)
    if result.requires_otp:
        return envelope(
            200,
            "Two-factor authentication required",
            {"requiresOtp": True, **_signin_payload(result)},
        )
    return envelope(200, "User signed in successfully", _signin_payload(result))


@router.post("/signin/2fa", dependencies=[Depends(ratelimit.signin_2fa_limit)])
async def signin_2fa(
    payload: Signin2FARequest,
    context: RequestContext = Depends(get_request_context),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    """Second signin step: credentials again plus the current TOTP code."""

    result = await service.signin_2fa(payload.email, payload.password, payload.token, context)
    return envelope(200, "User signed in successfully", _signin_payload(result))


@router.post("/refresh-token", dependencies=[Depends(ratelimit.refresh_token_limit)])
async def refresh_token(
    payload: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)
) -> dict:
    access_token = await service.refresh_access_token(payload.refresh_token)
    return envelope(
        200,
        "Access token refreshed successfully",
        dump(AccessTokenRead(access_token=access_token)),
    )


@router.post("/verify-email", dependencies=[Depends(ratelimit.verify_email_limit)])
async def verify_email(
    payload: VerifyEmailRequest, service: AuthService = Depends(get_auth_service)
) -> dict:
    user = await service.verify_email(payload.email, payload.code)
    return envelope(
        200,
        "Email verified successfully",
        {"user": dump(AccountRead.model_validate(user))},
    )


@router.post(
    "/resend-verification", dependencies=[Depends(ratelimit.resend_verification_limit)]
)
async def resend_verification(
    payload: EmailRequest, service: AuthService = Depends(get_auth_service)
) -> dict:
    await service.resend_verification_code(payload.email)
    return envelope(200, "Verification code sent successfully")


@router.post("/forgot-password", dependencies=[Depends(ratelimit.forgot_password_limit)])
async def forgot_password(
    payload: EmailRequest, service: AuthService = Depends(get_auth_service)
) -> dict:
    await service.forgot_password(payload.email)
    return envelope(200, "Password reset code sent to your email")


@router.post("/reset-password", dependencies=[Depends(ratelimit.reset_password_limit)])
async def reset_password(
    payload: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)
) -> dict:
    await service.reset_password(payload.email, payload.code, payload.new_password)
    return envelope(200, "Password reset successfully")


@router.post("/change-password", dependencies=[Depends(ratelimit.change_password_limit)])
async def change_password(
    payload: ChangePasswordRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    await service.change_password(claims.account_id, payload.old_password, payload.new_password)
    return envelope(200, "Password changed successfully")


@router.get("/login-history", dependencies=[Depends(ratelimit.login_history_limit)])
async def login_history(
    limit: int = Query(default=10, ge=1, le=100),
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    """Most recent signin attempts for the authenticated account."""

    attempts = await service.login_history(claims.account_id, limit)
    return envelope(
        200,
        "Login history retrieved successfully",
        {"loginHistory": [dump(LoginAttemptRead.model_validate(a)) for a in attempts]},
    )
