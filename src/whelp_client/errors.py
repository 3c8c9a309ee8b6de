"""Typed failures raised by the Whelp client."""

from __future__ import annotations

from typing import Any


class WhelpClientError(Exception):
    """Base class for every failure surfaced by the client."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class NotAuthenticated(WhelpClientError):
    """No credential is present or the server rejected it."""


class InvalidCredentialShape(WhelpClientError):
    """A login payload matched none of the known layouts."""


class MalformedResponse(WhelpClientError):
    """A response body did not have the expected structure."""


class ValidationError(WhelpClientError):
    """Input was rejected before any request was issued."""


class NetworkError(WhelpClientError):
    """The request could not be completed at the transport level."""


class UploadError(NetworkError):
    """A submission failed at the transport level."""


class QuotaExceeded(WhelpClientError):
    """The server refused the request because a usage quota is exhausted."""


class InvalidState(WhelpClientError):
    """The artifact's lifecycle state forbids the requested operation."""


class ApiError(WhelpClientError):
    """Any other non-success HTTP response."""


class NotFound(ApiError):
    """The server reported that the resource does not exist."""


class PermissionDenied(ApiError):
    """The credential is valid but may not access the resource."""
