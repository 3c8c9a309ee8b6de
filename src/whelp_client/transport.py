"""HTTP transport adapter for the Whelp API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, Sequence

import httpx

from .config import Settings
from .credentials import CredentialCell
from .errors import (
    ApiError,
    MalformedResponse,
    NetworkError,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    QuotaExceeded,
    WhelpClientError,
)
from .observability import MetricsRecorder


logger = logging.getLogger(__name__)

WHELP_TOKEN_HEADER = "X-Whelp-Token"

_QUOTA_STATUS_CODES = frozenset({402, 413, 429})

# (filename, content, content_type)
FileSpec = tuple[str, Any, Any]
UnauthorizedHook = Callable[[], None]


class ApiClient:
    """Issue requests against the Whelp API with the session's bearer token.

    The credential is read from the shared :class:`CredentialCell` once per
    request. Callers may instead pass ``whelp_token`` to authenticate a call
    with the ``X-Whelp-Token`` header; such calls never use or invalidate the
    session credential.
    """

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialCell,
        *,
        metrics: MetricsRecorder | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._metrics = metrics
        self._unauthorized_hooks: list[UnauthorizedHook] = []
        self._client = httpx.AsyncClient(
            base_url=settings.api_base_url.rstrip("/"),
            timeout=settings.request_timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @property
    def credentials(self) -> CredentialCell:
        return self._credentials

    def on_unauthorized(self, hook: UnauthorizedHook) -> None:
        """Register a callback run when the server rejects the session credential."""

        self._unauthorized_hooks.append(hook)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # Verb helpers -----------------------------------------------------

    async def get(
        self,
        endpoint: str,
        params: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> Any:
        clean = {key: value for key, value in (params or {}).items() if value is not None}
        return await self.request("GET", endpoint, params=clean or None, **options)

    async def post(self, endpoint: str, data: Any = None, **options: Any) -> Any:
        return await self.request("POST", endpoint, json=data, **options)

    async def put(self, endpoint: str, data: Any = None, **options: Any) -> Any:
        return await self.request("PUT", endpoint, json=data, **options)

    async def delete(self, endpoint: str, **options: Any) -> Any:
        return await self.request("DELETE", endpoint, **options)

    async def post_form(
        self,
        endpoint: str,
        fields: Mapping[str, Any],
        files: Iterable[tuple[str, FileSpec]] = (),
        **options: Any,
    ) -> Any:
        """POST a multipart body; plain fields are sent as form parts."""

        return await self.request(
            "POST", endpoint, files=_multipart(fields, files), **options
        )

    async def put_form(
        self,
        endpoint: str,
        fields: Mapping[str, Any],
        files: Iterable[tuple[str, FileSpec]] = (),
        **options: Any,
    ) -> Any:
        return await self.request(
            "PUT", endpoint, files=_multipart(fields, files), **options
        )

    # Core -------------------------------------------------------------

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        files: Sequence[tuple[str, Any]] | None = None,
        whelp_token: str | None = None,
        require_auth: bool = True,
        transport_error: type[NetworkError] = NetworkError,
    ) -> Any:
        headers: dict[str, str] = {}
        used_session = False
        if whelp_token:
            headers[WHELP_TOKEN_HEADER] = whelp_token
        else:
            credential = self._credentials.snapshot()
            if credential is not None:
                headers["Authorization"] = f"Bearer {credential.access_token}"
                used_session = True
            elif require_auth:
                raise NotAuthenticated(f"Authentication required for {method} {endpoint}")

        start = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                endpoint,
                params=params,
                json=json,
                files=files or None,
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("http.transport_error method=%s path=%s error=%s", method, endpoint, exc)
            if self._metrics is not None:
                self._metrics.increment("http.requests", method=method, outcome="transport_error")
            raise transport_error(f"{method} {endpoint} failed: {exc}") from exc

        elapsed = time.perf_counter() - start
        if self._metrics is not None:
            self._metrics.increment("http.requests", method=method, status=response.status_code)
            self._metrics.record_timing("http.request_duration", elapsed, method=method)
        logger.debug(
            "http.response method=%s path=%s status=%s duration_ms=%.1f",
            method,
            endpoint,
            response.status_code,
            elapsed * 1000.0,
        )

        body = _decode_body(response)
        if response.is_success:
            return body
        raise self._failure(response.status_code, body, used_session)

    def _failure(self, status_code: int, body: Any, used_session: bool) -> WhelpClientError:
        message = _error_message(body) or f"HTTP {status_code}"
        if status_code == 401:
            if used_session:
                self._notify_unauthorized()
            return NotAuthenticated(message, status_code=status_code, payload=body)
        if status_code in _QUOTA_STATUS_CODES or "quota" in message.lower():
            return QuotaExceeded(message, status_code=status_code, payload=body)
        if status_code == 404:
            return NotFound(message, status_code=status_code, payload=body)
        if status_code == 403:
            return PermissionDenied(message, status_code=status_code, payload=body)
        return ApiError(message, status_code=status_code, payload=body)

    def _notify_unauthorized(self) -> None:
        logger.info("http.unauthorized hooks=%s", len(self._unauthorized_hooks))
        for hook in list(self._unauthorized_hooks):
            hook()


def _multipart(
    fields: Mapping[str, Any], files: Iterable[tuple[str, FileSpec]]
) -> list[tuple[str, Any]]:
    parts: list[tuple[str, Any]] = []
    for name, value in fields.items():
        if value is None:
            continue
        parts.append((name, (None, _form_value(value))))
    parts.extend(files)
    return parts


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _decode_body(response: httpx.Response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponse(
                f"Response declared JSON but could not be decoded (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from exc
    return response.text


def _error_message(body: Any) -> str | None:
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None
    for key in ("message", "error", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    nested = body.get("data")
    if isinstance(nested, dict):
        found = _error_message(nested)
        if found:
            return found
    # Field validation errors: {"email": ["already registered"]}
    field_errors = [
        f"{key}: {' '.join(str(item) for item in value)}"
        for key, value in body.items()
        if isinstance(value, list) and value
    ]
    if field_errors:
        return "; ".join(field_errors)
    return None
