"""Caller-driven status polling for a single document."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from .documents import DocumentTracker
from .models import StatusSnapshot


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class StatusPoller:
    """Pollable view of one document's processing status.

    Nothing here starts background work. :meth:`poll_once` performs one read
    when the caller asks; :meth:`watch` is an async iterator that polls at a
    fixed cadence inside the caller's own task, so cancelling that task or
    leaving the ``async for`` loop stops polling.
    """

    def __init__(
        self,
        tracker: DocumentTracker,
        document_id: str,
        *,
        whelp_token: str | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._tracker = tracker
        self._document_id = document_id
        self._whelp_token = whelp_token
        self._interval = interval
        self._latest: StatusSnapshot | None = None

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def latest(self) -> StatusSnapshot | None:
        return self._latest

    @property
    def finished(self) -> bool:
        return not self._tracker.should_poll(self._document_id)

    def next_ticket(self) -> int:
        return self._tracker.next_ticket(self._document_id)

    def apply(self, snapshot: StatusSnapshot) -> bool:
        """Accept ``snapshot`` only if it is newer than the one already held."""

        if self._latest is not None and snapshot.sequence <= self._latest.sequence:
            logger.debug(
                "poller.snapshot.discarded id=%s sequence=%s latest=%s",
                self._document_id,
                snapshot.sequence,
                self._latest.sequence,
            )
            return False
        self._latest = snapshot
        return True

    async def poll_once(self) -> StatusSnapshot | None:
        """Poll once; ``None`` when the document is terminal or the reply was stale."""

        if self.finished:
            return None
        snapshot = await self._tracker.poll(
            self._document_id, whelp_token=self._whelp_token, ticket=self.next_ticket()
        )
        if self._tracker.is_stale(snapshot) or not self.apply(snapshot):
            return None
        return snapshot

    async def watch(self, interval: float | None = None) -> AsyncIterator[StatusSnapshot]:
        """Yield each fresh snapshot until the document reaches a terminal state."""

        if interval is None:
            interval = self._interval

        while not self.finished:
            snapshot = await self.poll_once()
            if snapshot is not None:
                yield snapshot
            if self.finished:
                break
            await asyncio.sleep(interval)
        logger.debug("poller.finished id=%s", self._document_id)
