"""Two-factor authentication endpoints (bearer auth required)."""
from fastapi import APIRouter, Depends

from .. import ratelimit
from ..dependencies import get_auth_service, get_current_claims
from ..errors import envelope
from ..schemas import OtpRequest, TwoFactorSetupRead, TwoFactorStatusRead, dump
from ..security import TokenClaims
from ..service import AuthService

router = APIRouter(prefix="/auth/2fa", tags=["2fa"])


@router.post("/setup", dependencies=[Depends(ratelimit.setup_2fa_limit)])
async def setup_2fa(
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    """Start (or restart) setup; 2FA stays off until ``/verify`` succeeds."""

    setup = await service.setup_2fa(claims.account_id)
    return envelope(
        200,
        "Scan the QR code with your authenticator app, then verify a code to enable 2FA",
        dump(
            TwoFactorSetupRead(
                secret=setup.secret,
                qr_code=setup.qr_code,
                otpauth_url=setup.provisioning_uri,
            )
        ),
    )


@router.post("/verify", dependencies=[Depends(ratelimit.verify_2fa_limit)])
async def verify_2fa(
    payload: OtpRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    await service.verify_2fa(claims.account_id, payload.token)
    return envelope(200, "Two-factor authentication enabled successfully")


@router.post("/disable", dependencies=[Depends(ratelimit.disable_2fa_limit)])
async def disable_2fa(
    payload: OtpRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    await service.disable_2fa(claims.account_id, payload.token)
    return envelope(200, "Two-factor authentication disabled successfully")


@router.get("/status", dependencies=[Depends(ratelimit.two_factor_status_limit)])
async def two_factor_status(
    claims: TokenClaims = Depends(get_current_claims),
    service: AuthService = Depends(get_auth_service),
) -> dict:
    status = await service.two_factor_status(claims.account_id)
    return envelope(
        200,
        "Two-factor authentication status retrieved successfully",
        dump(TwoFactorStatusRead(enabled=status.enabled, pending_setup=status.pending_setup)),
    )
