"""Integration tests for the auth HTTP API."""
import pyotp
import pytest
from httpx import AsyncClient

from .conftest import PASSWORD, wrong_totp_code

SIGNUP = {"firstName": "A", "lastName": "B", "email": "a@x.com", "password": PASSWORD}
CREDENTIALS = {"email": "a@x.com", "password": PASSWORD}


async def _signup_and_verify(client: AsyncClient, notifier) -> None:
    response = await client.post("/auth/signup", json=SIGNUP)
    assert response.status_code == 201
    response = await client.post(
        "/auth/verify-email", json={"email": "a@x.com", "code": notifier.last_code()}
    )
    assert response.status_code == 200


async def _bearer(client: AsyncClient) -> dict[str, str]:
    response = await client.post("/auth/signin", json=CREDENTIALS)
    return {"Authorization": f"Bearer {response.json()['data']['accessToken']}"}


@pytest.mark.asyncio
async def test_signup_verify_and_signin_flow(client: AsyncClient, notifier) -> None:
    """A user can sign up, verify their email, sign in and refresh their token."""

    response = await client.post("/auth/signup", json=SIGNUP)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "success"
    assert body["statusCode"] == 201
    user = body["data"]["user"]
    assert user["email"] == "a@x.com"
    assert user["isVerified"] is False
    assert "passwordHash" not in user
    assert "verificationCode" not in user

    early = await client.post("/auth/signin", json=CREDENTIALS)
    assert early.status_code == 403
    assert early.json()["kind"] == "not_verified"

    verify = await client.post(
        "/auth/verify-email", json={"email": "a@x.com", "code": notifier.last_code()}
    )
    assert verify.status_code == 200
    assert verify.json()["data"]["user"]["isVerified"] is True

    signin = await client.post("/auth/signin", json=CREDENTIALS)
    assert signin.status_code == 200
    data = signin.json()["data"]
    assert data["accessToken"] and data["refreshToken"]
    assert data["user"]["id"] == user["id"]

    refreshed = await client.post("/auth/refresh-token", json={"refreshToken": data["refreshToken"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["data"]["accessToken"]


@pytest.mark.asyncio
async def test_duplicate_signup_conflicts(client: AsyncClient) -> None:
    assert (await client.post("/auth/signup", json=SIGNUP)).status_code == 201
    response = await client.post("/auth/signup", json=SIGNUP)
    assert response.status_code == 409
    assert response.json()["status"] == "fail"


@pytest.mark.asyncio
async def test_signup_fails_cleanly_when_email_cannot_be_sent(client: AsyncClient, notifier) -> None:
    notifier.fail = True
    response = await client.post("/auth/signup", json=SIGNUP)
    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert "SMTP" not in body["message"]

    notifier.fail = False
    assert (await client.post("/auth/signup", json=SIGNUP)).status_code == 201


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, field",
    [
        ({**SIGNUP, "password": "short"}, "password"),
        ({**SIGNUP, "password": "Password123!"}, "password"),
        ({**SIGNUP, "email": "a@mailinator.com"}, "email"),
        ({**SIGNUP, "email": "not-an-email"}, "email"),
        ({**SIGNUP, "firstName": "R2D2"}, "firstName"),
    ],
)
async def test_signup_validation(client: AsyncClient, payload: dict, field: str) -> None:
    response = await client.post("/auth/signup", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["kind"] == "validation"
    assert field in [error["field"] for error in body["validationErrors"]]


@pytest.mark.asyncio
async def test_signin_does_not_reveal_registered_emails(client: AsyncClient, notifier) -> None:
    await _signup_and_verify(client, notifier)
    wrong_password = await client.post("/auth/signin", json={**CREDENTIALS, "password": "Wr0ng!Pass"})
    unknown_email = await client.post("/auth/signin", json={**CREDENTIALS, "email": "b@x.com"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


@pytest.mark.asyncio
async def test_refresh_token_errors(client: AsyncClient) -> None:
    response = await client.post("/auth/refresh-token", json={"refreshToken": "garbage"})
    assert response.status_code == 401
    assert response.json()["kind"] == "token_invalid"


@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, notifier) -> None:
    await _signup_and_verify(client, notifier)

    assert (await client.post("/auth/forgot-password", json={"email": "a@x.com"})).status_code == 200
    code = notifier.last_code("password_reset")
    reset = {"email": "a@x.com", "code": code, "newPassword": "N3w!Passw0rd"}

    assert (await client.post("/auth/reset-password", json=reset)).status_code == 200
    replay = await client.post("/auth/reset-password", json=reset)
    assert replay.status_code == 400
    assert replay.json()["kind"] == "invalid_code"

    signin = await client.post("/auth/signin", json={"email": "a@x.com", "password": "N3w!Passw0rd"})
    assert signin.status_code == 200


@pytest.mark.asyncio
async def test_resend_and_unknown_account(client: AsyncClient, notifier) -> None:
    await client.post("/auth/signup", json=SIGNUP)
    assert (await client.post("/auth/resend-verification", json={"email": "a@x.com"})).status_code == 200
    assert len(notifier.sent) == 2

    missing = await client.post("/auth/resend-verification", json={"email": "b@x.com"})
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_bearer_endpoints_require_a_token(client: AsyncClient) -> None:
    missing = await client.get("/auth/login-history")
    assert missing.status_code == 403

    invalid = await client.post("/auth/2fa/setup", headers={"Authorization": "Bearer nope"})
    assert invalid.status_code == 401
    assert invalid.json()["kind"] == "token_invalid"


@pytest.mark.asyncio
async def test_two_factor_signin_flow(client: AsyncClient, notifier) -> None:
    """setup -> verify -> signin asks for OTP -> signin/2fa returns tokens."""

    await _signup_and_verify(client, notifier)
    headers = await _bearer(client)

    setup = await client.post("/auth/2fa/setup", headers=headers)
    assert setup.status_code == 200
    data = setup.json()["data"]
    assert data["qrCode"].startswith("data:image/png;base64,")
    totp = pyotp.TOTP(data["secret"])

    status = await client.get("/auth/2fa/status", headers=headers)
    assert status.json()["data"] == {"enabled": False, "pendingSetup": True}

    verify = await client.post("/auth/2fa/verify", json={"token": totp.now()}, headers=headers)
    assert verify.status_code == 200

    pending = await client.post("/auth/signin", json=CREDENTIALS)
    assert pending.status_code == 200
    pending_data = pending.json()["data"]
    assert pending_data["requiresOtp"] is True
    assert "accessToken" not in pending_data

    rejected = await client.post(
        "/auth/signin/2fa", json={**CREDENTIALS, "token": wrong_totp_code(data["secret"])}
    )
    assert rejected.status_code == 401
    assert rejected.json()["kind"] == "invalid_otp"

    accepted = await client.post("/auth/signin/2fa", json={**CREDENTIALS, "token": totp.now()})
    assert accepted.status_code == 200
    assert accepted.json()["data"]["accessToken"]

    history = await client.get("/auth/login-history", headers=headers)
    attempts = history.json()["data"]["loginHistory"]
    # newest first: successful OTP, failed OTP, signin for the bearer token
    assert [a["successful"] for a in attempts] == [True, False, True]

    disable = await client.post("/auth/2fa/disable", json={"token": totp.now()}, headers=headers)
    assert disable.status_code == 200
    again = await client.post("/auth/2fa/disable", json={"token": totp.now()}, headers=headers)
    assert again.status_code == 400
    assert again.json()["kind"] == "not_enabled"


@pytest.mark.asyncio
async def test_change_password_endpoint(client: AsyncClient, notifier) -> None:
    await _signup_and_verify(client, notifier)
    headers = await _bearer(client)

    wrong = await client.post(
        "/auth/change-password",
        json={"oldPassword": "Wr0ng!Pass", "newPassword": "N3w!Passw0rd"},
        headers=headers,
    )
    assert wrong.status_code == 401

    changed = await client.post(
        "/auth/change-password",
        json={"oldPassword": PASSWORD, "newPassword": "N3w!Passw0rd"},
        headers=headers,
    )
    assert changed.status_code == 200


@pytest.mark.asyncio
async def test_security_headers_present(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


@pytest.mark.asyncio
async def test_signin_is_rate_limited(app, client: AsyncClient) -> None:
    app.state.rate_limiter.enabled = True
    statuses = [
        (await client.post("/auth/signin", json=CREDENTIALS)).status_code for _ in range(6)
    ]
    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429


@pytest.mark.asyncio
async def test_rotating_forwarded_for_does_not_reset_the_limit(app, client: AsyncClient) -> None:
    app.state.rate_limiter.enabled = True
    statuses = [
        (
            await client.post(
                "/auth/signin",
                json=CREDENTIALS,
                headers={"X-Forwarded-For": f"10.0.0.{i}"},
            )
        ).status_code
        for i in range(8)
    ]
    assert statuses[:5] == [401] * 5
    assert statuses[5:] == [429] * 3
    assert len(app.state.rate_limiter) == 1


@pytest.mark.asyncio
async def test_forwarded_for_is_honoured_behind_a_trusted_proxy(app, client: AsyncClient) -> None:
    limiter = app.state.rate_limiter
    limiter.enabled = True
    limiter.trust_proxy = True
    for i in range(6):
        response = await client.post(
            "/auth/signin", json=CREDENTIALS, headers={"X-Forwarded-For": f"10.0.0.{i}, 172.16.0.1"}
        )
        assert response.status_code == 401
    assert len(limiter) == 6
