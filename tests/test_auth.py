from __future__ import annotations

import pytest

from whelp_client.auth import password_problems, validate_password
from whelp_client.errors import ValidationError


@pytest.mark.parametrize(
    ("password", "missing"),
    [
        ("Short#1", "at least 8 characters"),
        ("lowercase#123", "an uppercase letter"),
        ("UPPERCASE#123", "a lowercase letter"),
        ("NoDigits#here", "a digit"),
        ("NoSpecial123", "one of"),
    ],
)
def test_password_policy_reports_each_problem(password: str, missing: str) -> None:
    problems = password_problems(password)

    assert any(problem.startswith(missing) for problem in problems)


def test_valid_password_passes() -> None:
    assert password_problems("Secret#123") == []
    validate_password("Secret#123", "Secret#123")


def test_confirmation_must_match() -> None:
    with pytest.raises(ValidationError, match="do not match"):
        validate_password("Secret#123", "Secret#124")


@pytest.mark.asyncio
async def test_register_sends_form_without_auth(whelp, server) -> None:
    server.add("POST", "/auth/register/", {"data": {"user_id": "u9", "message": "OTP sent"}})

    body = await whelp.auth.register("new@y.com", role="account_holder")

    assert body == {"user_id": "u9", "message": "OTP sent"}
    request = server.requests[0]
    assert "Authorization" not in request.headers
    assert b"new@y.com" in request.content
    assert b'name="company"' not in request.content


@pytest.mark.asyncio
async def test_set_password_validates_before_request(whelp, server) -> None:
    with pytest.raises(ValidationError):
        await whelp.auth.set_password("u9", "Secret#123", "Different#123")
    with pytest.raises(ValidationError):
        await whelp.auth.set_password("u9", "weak", "weak")

    assert server.requests == []


@pytest.mark.asyncio
async def test_change_password_uses_session(logged_in, server) -> None:
    server.add("POST", "/auth/change-password/", {"message": "Password changed"})

    body = await logged_in.auth.change_password("Old#12345", "Secret#123", "Secret#123")

    assert body["message"] == "Password changed"
    assert server.requests[0].headers["Authorization"] == "Bearer a1"


@pytest.mark.asyncio
async def test_csrf_token_is_read_from_either_key(whelp, server) -> None:
    server.add("GET", "/auth/csrf/", {"csrfToken": "abc"})

    assert await whelp.auth.csrf_token() == "abc"


@pytest.mark.asyncio
async def test_update_profile_rejects_unknown_fields(logged_in, server) -> None:
    with pytest.raises(ValidationError, match="email"):
        await logged_in.auth.update_profile(email="x@y.com")
    with pytest.raises(ValidationError):
        await logged_in.auth.update_profile()

    assert server.requests == []
