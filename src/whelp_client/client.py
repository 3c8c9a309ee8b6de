"""Composition root wiring the client components together."""

from __future__ import annotations

import logging

import httpx

from .auth import AuthApi
from .config import Settings
from .credentials import CredentialCell
from .documents import DocumentTracker
from .observability import MetricsRecorder
from .onboarding import OnboardingApi
from .polling import StatusPoller
from .search import SearchService
from .session import SessionManager
from .storage import CredentialStore, FileCredentialStore
from .transport import ApiClient


logger = logging.getLogger(__name__)


class WhelpClient:
    """Bundle of the transport, session, account, document and search services.

    All services share one :class:`CredentialCell`; the session manager is
    its only writer.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        store: CredentialStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self.metrics = metrics or MetricsRecorder.from_settings(self.settings)
        self.credentials = CredentialCell()
        self.api = ApiClient(
            self.settings,
            self.credentials,
            metrics=self.metrics,
            transport=transport,
        )
        if store is None:
            store = FileCredentialStore(
                self.settings.credential_file,
                access_ttl_days=self.settings.access_token_ttl_days,
                refresh_ttl_days=self.settings.refresh_token_ttl_days,
            )
        self.auth = AuthApi(self.api)
        self.session = SessionManager(self.api, store, auth_api=self.auth)
        self.onboarding = OnboardingApi(self.api)
        self.documents = DocumentTracker(self.api, metrics=self.metrics)
        self.search = SearchService(self.api, self.settings, metrics=self.metrics)
        logger.debug("client.created base_url=%s", self.settings.api_base_url)

    def poller(self, document_id: str, *, whelp_token: str | None = None) -> StatusPoller:
        return StatusPoller(
            self.documents,
            document_id,
            whelp_token=whelp_token,
            interval=self.settings.status_poll_interval,
        )

    async def aclose(self) -> None:
        await self.api.aclose()

    async def __aenter__(self) -> "WhelpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
