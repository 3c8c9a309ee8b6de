"""Account endpoints: registration, OTP verification, passwords and profile."""

from __future__ import annotations

import mimetypes
import re
from pathlib import Path
from typing import Any

from .envelopes import unwrap_object
from .errors import ValidationError
from .transport import ApiClient


PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARS = '!@#$%^&*(),.?":{}|<>'

_SPECIAL_RE = re.compile("[" + re.escape(PASSWORD_SPECIAL_CHARS) + "]")
_PROFILE_FIELDS = ("first_name", "last_name", "department", "phone")


def password_problems(password: str) -> list[str]:
    """Return the unmet password requirements (empty when the password is acceptable)."""

    problems = []
    if len(password) < PASSWORD_MIN_LENGTH:
        problems.append(f"at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[A-Z]", password):
        problems.append("an uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("a lowercase letter")
    if not re.search(r"\d", password):
        problems.append("a digit")
    if not _SPECIAL_RE.search(password):
        problems.append(f"one of {PASSWORD_SPECIAL_CHARS}")
    return problems


def validate_password(password: str, confirm_password: str | None = None) -> None:
    problems = password_problems(password)
    if problems:
        raise ValidationError("Password must contain " + ", ".join(problems))
    if confirm_password is not None and confirm_password != password:
        raise ValidationError("Passwords do not match")


def _require(**values: Any) -> None:
    for name, value in values.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{name} is required")


class AuthApi:
    """Thin wrappers over the ``/auth/`` endpoints.

    Responses are returned as plain dictionaries, unwrapped from the
    ``{"data": ...}`` envelope when the server uses one. Required fields are
    checked before any request is sent.
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def register(
        self, email: str, *, role: str | None = None, company: str | None = None
    ) -> dict[str, Any]:
        _require(email=email)
        payload = await self._client.post_form(
            "/auth/register/",
            {"email": email, "role": role, "company": company},
            require_auth=False,
        )
        return unwrap_object(payload, what="register")

    async def register_internal(
        self,
        token: str,
        email: str,
        *,
        role: str | None = None,
        company: str | None = None,
    ) -> dict[str, Any]:
        _require(token=token, email=email)
        payload = await self._client.post_form(
            f"/auth/register/{token}/",
            {"email": email, "role": role, "company": company},
            require_auth=False,
        )
        return unwrap_object(payload, what="register")

    async def csrf_token(self) -> str:
        payload = unwrap_object(
            await self._client.get("/auth/csrf/", require_auth=False), what="csrf"
        )
        return str(payload.get("csrfToken") or payload.get("csrf_token") or "")

    async def verify_otp(self, email: str, otp: str) -> dict[str, Any]:
        _require(email=email, otp=otp)
        payload = await self._client.post_form(
            "/auth/verify-otp/", {"email": email, "otp": otp}, require_auth=False
        )
        return unwrap_object(payload, what="verify_otp")

    async def resend_otp(self, email: str) -> dict[str, Any]:
        _require(email=email)
        payload = await self._client.post_form(
            "/auth/resend-otp/", {"email": email}, require_auth=False
        )
        return unwrap_object(payload, what="resend_otp")

    async def set_password(self, user_id: str, password: str, confirm_password: str) -> dict[str, Any]:
        _require(user_id=user_id, password=password)
        validate_password(password, confirm_password)
        payload = await self._client.post_form(
            "/auth/set-password/",
            {"password": password, "confirm_password": confirm_password, "user_id": user_id},
            require_auth=False,
        )
        return unwrap_object(payload, what="set_password")

    async def forgot_password(self, email: str) -> dict[str, Any]:
        _require(email=email)
        payload = await self._client.post_form(
            "/auth/forgot-password/", {"email": email}, require_auth=False
        )
        return unwrap_object(payload, what="forgot_password")

    async def verify_reset_otp(self, email: str, otp: str) -> dict[str, Any]:
        _require(email=email, otp=otp)
        payload = await self._client.post_form(
            "/auth/verify-reset-otp/", {"email": email, "otp": otp}, require_auth=False
        )
        return unwrap_object(payload, what="verify_reset_otp")

    async def reset_password(self, reset_token: str, new_password: str) -> dict[str, Any]:
        _require(reset_token=reset_token, new_password=new_password)
        validate_password(new_password)
        payload = await self._client.post_form(
            "/auth/reset-password/",
            {"new_password": new_password, "reset_token": reset_token},
            require_auth=False,
        )
        return unwrap_object(payload, what="reset_password")

    async def change_password(
        self, current_password: str, new_password: str, confirm_password: str
    ) -> dict[str, Any]:
        _require(current_password=current_password, new_password=new_password)
        validate_password(new_password, confirm_password)
        payload = await self._client.post_form(
            "/auth/change-password/",
            {
                "current_password": current_password,
                "new_password": new_password,
                "confirm_password": confirm_password,
            },
        )
        return unwrap_object(payload, what="change_password")

    async def login(self, email: str, password: str) -> Any:
        """Return the raw login body; decoding belongs to the session manager."""

        _require(email=email, password=password)
        return await self._client.post_form(
            "/auth/login/", {"email": email, "password": password}, require_auth=False
        )

    async def get_profile(self) -> Any:
        return await self._client.get("/auth/profile/")

    async def update_profile(self, *, profile_photo: Path | None = None, **fields: Any) -> Any:
        unknown = set(fields) - set(_PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        files = []
        if profile_photo is not None:
            path = Path(profile_photo)
            if not path.is_file():
                raise ValidationError(f"Profile photo {path} does not exist")
            content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
            files.append(("profile_photo", (path.name, path.read_bytes(), content_type)))
        form = {key: value for key, value in fields.items() if value}
        if not form and not files:
            raise ValidationError("No profile fields to update")
        return await self._client.put_form("/auth/profile/", form, files)

    async def logout(self) -> Any:
        return await self._client.post("/auth/logout/")
