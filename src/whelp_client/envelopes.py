"""Decoding of the API's response envelopes.

The server answers some endpoints with the object itself and others with
``{"data": object}``; login has two distinct layouts of its own. Each layout
is matched explicitly and anything else is rejected with a named failure
instead of being guessed at.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import InvalidCredentialShape, MalformedResponse


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoginPayload:
    """Decoded login response."""

    access: str
    refresh: str
    user: dict[str, Any]
    layout: str


def decode_login(payload: Any) -> LoginPayload:
    """Decode ``{status, tokens, user}`` or ``{data: {access, refresh, user}}``."""

    if isinstance(payload, Mapping):
        tokens = payload.get("tokens")
        user = payload.get("user")
        if (
            payload.get("status") == "success"
            and isinstance(tokens, Mapping)
            and isinstance(user, Mapping)
            and _is_token(tokens.get("access"))
        ):
            return LoginPayload(
                access=tokens["access"],
                refresh=str(tokens.get("refresh") or ""),
                user=dict(user),
                layout="tokens",
            )
        data = payload.get("data")
        if (
            isinstance(data, Mapping)
            and _is_token(data.get("access"))
            and isinstance(data.get("user"), Mapping)
        ):
            return LoginPayload(
                access=data["access"],
                refresh=str(data.get("refresh") or ""),
                user=dict(data["user"]),
                layout="data",
            )
    keys = sorted(payload) if isinstance(payload, Mapping) else type(payload).__name__
    logger.error("envelope.login.unrecognized keys=%s", keys)
    raise InvalidCredentialShape("Invalid login response format", payload=payload)


def unwrap_object(payload: Any, *, what: str) -> dict[str, Any]:
    """Return the object from either a direct body or a ``{data: object}`` envelope."""

    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, Mapping):
            return dict(data)
        if "data" not in payload or data is None:
            return dict(payload)
    logger.error("envelope.%s.unrecognized type=%s", what, type(payload).__name__)
    raise MalformedResponse(f"Unexpected {what} response shape", payload=payload)


def _is_token(value: Any) -> bool:
    return isinstance(value, str) and bool(value)
