"""TOTP (Time-based One-Time Password) management for 2FA.

Uses pyotp for secrets and codes, and qrcode to render the provisioning URI
as a PNG an authenticator app can scan.
"""
from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from datetime import datetime

import pyotp
import qrcode
from qrcode.image.pure import PyPNGImage

logger = logging.getLogger(__name__)

TIME_STEP_SECONDS = 30
DRIFT_STEPS = 1


@dataclass(frozen=True)
class TotpSecret:
    secret: str
    provisioning_uri: str


class TotpProvider:
    """Generates and checks RFC 6238 codes for one issuer."""

    def __init__(self, issuer: str) -> None:
        self.issuer = issuer

    def generate_secret(self, account_label: str) -> TotpSecret:
        """Generate a new base32 secret and its otpauth:// URI."""

        secret = pyotp.random_base32()
        uri = pyotp.TOTP(secret, interval=TIME_STEP_SECONDS).provisioning_uri(
            name=account_label, issuer_name=self.issuer
        )
        return TotpSecret(secret=secret, provisioning_uri=uri)

    @staticmethod
    def render_provisioning_image(uri: str) -> str:
        """Return the URI encoded as a QR code PNG data URL."""

        image = qrcode.make(uri, image_factory=PyPNGImage)
        buffer = io.BytesIO()
        image.save(buffer)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    @staticmethod
    def current_code(secret: str) -> str:
        return pyotp.TOTP(secret, interval=TIME_STEP_SECONDS).now()

    @staticmethod
    def verify_code(code: str | None, secret: str | None, at: datetime | None = None) -> bool:
        """Check ``code`` against the time step of ``at`` (default now) and one step either side.

        Never raises: a malformed secret and a wrong code are indistinguishable.
        """

        if not code or not secret:
            return False
        try:
            totp = pyotp.TOTP(secret, interval=TIME_STEP_SECONDS)
            return totp.verify(code.strip(), for_time=at, valid_window=DRIFT_STEPS)
        except Exception as exc:  # noqa: BLE001
            logger.debug(f"TOTP verification error: {type(exc).__name__}")
            return False
