"""Authenticated session lifecycle."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .auth import AuthApi
from .credentials import Credential
from .envelopes import decode_login, unwrap_object
from .errors import InvalidCredentialShape, MalformedResponse, NotAuthenticated, WhelpClientError
from .models import Identity
from .storage import CredentialStore
from .transport import ApiClient


logger = logging.getLogger(__name__)


class SessionManager:
    """Own the session credential and the cached identity.

    The manager is the only writer of the client's :class:`CredentialCell`.
    It registers :meth:`clear` with the transport so any request rejected as
    unauthenticated drops the session everywhere at once.
    """

    def __init__(
        self,
        client: ApiClient,
        store: CredentialStore,
        *,
        auth_api: AuthApi | None = None,
    ) -> None:
        self._client = client
        self._cell = client.credentials
        self._store = store
        self._auth = auth_api or AuthApi(client)
        self._identity: Identity | None = None
        client.on_unauthorized(self.clear)

    @property
    def is_authenticated(self) -> bool:
        return self._cell.snapshot() is not None

    def current_identity(self) -> Identity | None:
        return self._identity

    def establish(self, login_result: Any) -> None:
        """Store the credential from a login response and cache its user."""

        decoded = decode_login(login_result)
        identity = Identity.from_payload(decoded.user)
        credential = Credential(access_token=decoded.access, refresh_token=decoded.refresh)
        self._store.save(credential)
        version = self._cell.set(credential)
        self._identity = identity
        logger.info(
            "session.established user=%s layout=%s version=%s",
            identity.id,
            decoded.layout,
            version,
        )

    async def refresh_identity(self) -> Identity:
        if self._cell.snapshot() is None:
            raise NotAuthenticated("No active session")
        payload = await self._auth.get_profile()
        identity = Identity.from_payload(unwrap_object(payload, what="profile"))
        if self._cell.snapshot() is None:
            raise NotAuthenticated("Session ended while the profile was loading")
        self._identity = identity
        logger.debug("session.identity.refreshed user=%s", identity.id)
        return identity

    def clear(self) -> None:
        had_credential = self._cell.clear()
        self._store.clear()
        self._identity = None
        if had_credential:
            logger.info("session.cleared")

    async def login(self, email: str, password: str) -> Identity:
        try:
            self.establish(await self._auth.login(email, password))
        except (WhelpClientError, OSError):
            self.clear()
            raise
        assert self._identity is not None
        return self._identity

    async def restore(self) -> Identity | None:
        """Reattach a persisted credential and fetch the profile it belongs to."""

        try:
            credential = self._store.load()
        except InvalidCredentialShape as exc:
            logger.warning("session.restore.undecodable error=%s", exc)
            self.clear()
            return None
        if credential is None:
            return None
        self._cell.set(credential)
        try:
            return await self.refresh_identity()
        except WhelpClientError:
            self.clear()
            raise

    async def logout(self) -> None:
        if self.is_authenticated:
            try:
                await self._auth.logout()
            except WhelpClientError as exc:
                logger.warning("session.logout.request_failed error=%s", exc)
        self.clear()

    async def update_profile(self, *, profile_photo: Path | None = None, **fields: Any) -> Identity:
        if not self.is_authenticated:
            raise NotAuthenticated("No active session")
        payload = await self._auth.update_profile(profile_photo=profile_photo, **fields)
        try:
            identity = Identity.from_payload(unwrap_object(payload, what="profile"))
        except MalformedResponse:
            return await self.refresh_identity()
        self._identity = identity
        return identity
