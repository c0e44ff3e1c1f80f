"""Tests for the TOTP provider and device classification."""
import base64
from datetime import datetime, timedelta
from urllib.parse import parse_qs, unquote, urlparse

import pyotp
import pytest

from authcore.context import DeviceClass, classify_device
from authcore.totp import TotpProvider

# Middle of a 30 second step, so +-1 step never straddles a boundary
FIXED_TIME = datetime(2026, 1, 1, 12, 0, 15)


@pytest.fixture
def provider() -> TotpProvider:
    return TotpProvider(issuer="Khaled")


def test_generated_secret_and_uri(provider: TotpProvider) -> None:
    generated = provider.generate_secret("ada@x.com")
    assert len(generated.secret) == 32
    base64.b32decode(generated.secret)

    uri = urlparse(generated.provisioning_uri)
    assert uri.scheme == "otpauth"
    assert uri.netloc == "totp"
    assert unquote(uri.path) == "/Khaled:ada@x.com"
    query = parse_qs(uri.query)
    assert query["secret"] == [generated.secret]
    assert query["issuer"] == ["Khaled"]


def test_provisioning_image_is_png_data_url(provider: TotpProvider) -> None:
    uri = provider.generate_secret("ada@x.com").provisioning_uri
    data_url = provider.render_provisioning_image(uri)
    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]).startswith(b"\x89PNG")


@pytest.mark.parametrize("offset_steps", [-1, 0, 1])
def test_code_within_one_step_is_accepted(provider: TotpProvider, offset_steps: int) -> None:
    secret = pyotp.random_base32()
    code = pyotp.TOTP(secret).at(FIXED_TIME + timedelta(seconds=30 * offset_steps))
    assert provider.verify_code(code, secret, at=FIXED_TIME)


@pytest.mark.parametrize("offset_steps", [-2, 2])
def test_code_two_steps_away_is_rejected(provider: TotpProvider, offset_steps: int) -> None:
    secret = pyotp.random_base32()
    code = pyotp.TOTP(secret).at(FIXED_TIME + timedelta(seconds=30 * offset_steps))
    assert not provider.verify_code(code, secret, at=FIXED_TIME)


def test_verify_never_raises(provider: TotpProvider) -> None:
    assert not provider.verify_code("123456", "not base32 !!")
    assert not provider.verify_code("abcdef", pyotp.random_base32())
    assert not provider.verify_code("", pyotp.random_base32())
    assert not provider.verify_code("123456", None)


def test_current_code_verifies(provider: TotpProvider) -> None:
    secret = pyotp.random_base32()
    assert provider.verify_code(provider.current_code(secret), secret)


@pytest.mark.parametrize(
    "user_agent, expected",
    [
        (None, DeviceClass.UNKNOWN),
        ("", DeviceClass.UNKNOWN),
        ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36", DeviceClass.DESKTOP),
        ("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile/15E148", DeviceClass.MOBILE),
        ("Mozilla/5.0 (Linux; Android 14; Pixel 8) Mobile Safari/537.36", DeviceClass.MOBILE),
        ("Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) Mobile/15E148", DeviceClass.TABLET),
        ("Mozilla/5.0 (Linux; Android 13; SM-X700) Safari/537.36", DeviceClass.TABLET),
    ],
)
def test_classify_device(user_agent, expected) -> None:
    assert classify_device(user_agent) is expected
