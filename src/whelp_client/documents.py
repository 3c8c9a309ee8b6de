"""Submission and lifecycle tracking for ingested documents."""

from __future__ import annotations

import json
import logging
import mimetypes
from dataclasses import replace
from itertools import count
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping
from urllib.parse import urlparse

from .envelopes import unwrap_object
from .errors import InvalidState, MalformedResponse, NotFound, UploadError, ValidationError
from .models import (
    AccessLevel,
    Artifact,
    DocumentPage,
    ProcessingStatus,
    SourceKind,
    StatusSnapshot,
    TrainingInfo,
)
from .observability import MetricsRecorder
from .transport import ApiClient


logger = logging.getLogger(__name__)

ArtifactListener = Callable[[Artifact], None]

_SUBMIT_ENDPOINTS = {
    SourceKind.FILE: "/processing/documents/upload/",
    SourceKind.TEXT: "/processing/text/",
    SourceKind.WEBPAGE: "/processing/webpage-process/",
}


class DocumentTracker:
    """Submit artifacts and follow their lifecycle and embedding states.

    The tracker keeps the artifacts it has submitted or loaded, updates them
    from status reads, and notifies subscribers whenever one changes. It owns
    no timers: callers decide when to :meth:`poll`, and the tracker refuses
    to poll an artifact whose lifecycle has already reached a terminal state.

    Each poll is tagged with a per-artifact ticket when it is issued. A
    response is applied only if its ticket is newer than the last applied
    one, so a slow response can never overwrite a fresher status.
    """

    def __init__(self, client: ApiClient, *, metrics: MetricsRecorder | None = None) -> None:
        self._client = client
        self._metrics = metrics
        self._artifacts: dict[str, Artifact] = {}
        self._tickets: dict[str, Iterator[int]] = {}
        self._applied: dict[str, int] = {}
        self._listing_cache: dict[tuple, DocumentPage] = {}
        self._listeners: list[ArtifactListener] = []

    # Observation ------------------------------------------------------

    def subscribe(self, listener: ArtifactListener) -> Callable[[], None]:
        """Call ``listener`` with the artifact after every tracked change."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def tracked(self, document_id: str) -> Artifact | None:
        return self._artifacts.get(document_id)

    def artifacts(self) -> list[Artifact]:
        return list(self._artifacts.values())

    def should_poll(self, document_id: str) -> bool:
        artifact = self._artifacts.get(document_id)
        return artifact is None or not artifact.status.is_terminal

    def next_ticket(self, document_id: str) -> int:
        """Reserve the next poll sequence number for ``document_id``."""

        return next(self._tickets.setdefault(document_id, count(1)))

    def is_stale(self, snapshot: StatusSnapshot) -> bool:
        return snapshot.sequence < self._applied.get(snapshot.document_id, 0)

    def invalidate_listing(self) -> None:
        if self._listing_cache:
            logger.debug("documents.listing.invalidated entries=%s", len(self._listing_cache))
        self._listing_cache.clear()

    # Submission -------------------------------------------------------

    async def submit(
        self,
        kind: SourceKind | str,
        payload: Mapping[str, Any],
        access_level: AccessLevel | str,
        *,
        whelp_token: str | None = None,
    ) -> str:
        """Send one artifact for ingestion and start tracking it as pending.

        ``payload`` holds ``file`` (a path or ``(filename, bytes)``) for file
        uploads, ``text`` and ``title`` for raw text, or ``url`` for web
        pages. ``chatbot_ids``, ``is_chatbot`` and ``team_id`` are optional.
        """

        kind = _parse_enum(SourceKind, kind, "source kind")
        level = _parse_enum(AccessLevel, access_level, "access level")
        fields: dict[str, Any] = {"access_level": level.value}
        files: list[tuple[str, Any]] = []
        title: str | None

        if kind is SourceKind.FILE:
            filename, content = _read_file(payload.get("file"))
            content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
            files.append(("file", (filename, content, content_type)))
            title = filename
        elif kind is SourceKind.TEXT:
            text = _required_text(payload, "text")
            title = _required_text(payload, "title")
            fields.update(text=text, title=title)
        else:
            url = _required_text(payload, "url")
            parsed = urlparse(url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                raise ValidationError(f"'{url}' is not an http(s) URL")
            fields["url"] = url
            title = url

        if payload.get("chatbot_ids") is not None:
            fields["chatbot_ids"] = json.dumps(list(payload["chatbot_ids"]))
        if payload.get("is_chatbot") is not None:
            fields["is_chatbot"] = bool(payload["is_chatbot"])
        if payload.get("team_id") and kind is not SourceKind.WEBPAGE:
            fields["team_id"] = payload["team_id"]

        response = await self._client.post_form(
            _SUBMIT_ENDPOINTS[kind],
            fields,
            files,
            whelp_token=whelp_token,
            transport_error=UploadError,
        )
        body = unwrap_object(response, what="submission")
        document_id = body.get("document_id") or body.get("id")
        if not document_id:
            logger.error("documents.submit.missing_id kind=%s keys=%s", kind.value, sorted(body))
            raise MalformedResponse("Submission response did not include a document_id", payload=response)

        document_id = str(document_id)
        self._track(
            Artifact(
                id=document_id,
                source_kind=kind,
                access_level=level.value,
                title=title,
            )
        )
        self.invalidate_listing()
        if self._metrics is not None:
            self._metrics.increment("documents.submitted", kind=kind.value)
        logger.info("documents.submitted id=%s kind=%s access=%s", document_id, kind.value, level.value)
        return document_id

    # Status -----------------------------------------------------------

    async def poll(
        self,
        document_id: str,
        *,
        whelp_token: str | None = None,
        ticket: int | None = None,
    ) -> StatusSnapshot:
        """Issue one status read for ``document_id``.

        ``ticket`` is a sequence number already reserved with
        :meth:`next_ticket`; a fresh one is taken when it is omitted.
        """

        return await self._read_status(
            document_id,
            f"/processing/documents/{document_id}/processing-status",
            whelp_token=whelp_token,
            ticket=ticket,
        )

    async def poll_stream(self, document_id: str, *, ticket: int | None = None) -> StatusSnapshot:
        """Read the status from the stream endpoint; same rules as :meth:`poll`."""

        return await self._read_status(
            document_id,
            f"/processing/documents/{document_id}/status/stream/",
            ticket=ticket,
        )

    async def _read_status(
        self,
        document_id: str,
        endpoint: str,
        *,
        whelp_token: str | None = None,
        ticket: int | None = None,
    ) -> StatusSnapshot:
        if not self.should_poll(document_id):
            status = self._artifacts[document_id].status.value
            raise InvalidState(f"Document {document_id} is already {status}; its status cannot change")
        if ticket is None:
            ticket = self.next_ticket(document_id)
        response = await self._client.get(endpoint, whelp_token=whelp_token)
        snapshot = StatusSnapshot.from_payload(
            unwrap_object(response, what="processing_status"), sequence=ticket
        )
        if self._metrics is not None:
            self._metrics.increment("documents.polls", status=snapshot.status.value)
        if self.is_stale(snapshot):
            logger.debug(
                "documents.poll.stale id=%s ticket=%s applied=%s",
                document_id,
                ticket,
                self._applied.get(document_id),
            )
            return snapshot
        self._applied[document_id] = ticket
        artifact = self._artifacts.get(document_id) or Artifact(id=document_id)
        error = snapshot.error
        if error is None and snapshot.status is ProcessingStatus.FAILED:
            error = artifact.error
        self._track(replace(artifact, status=snapshot.status, error=error))
        return snapshot

    async def training_info(self, document_id: str) -> TrainingInfo:
        response = await self._client.get(f"/processing/documents/{document_id}/train/")
        return TrainingInfo.from_payload(unwrap_object(response, what="training_info"))

    # Mutations --------------------------------------------------------

    async def start_training(self, document_id: str, *, whelp_token: str | None = None) -> None:
        artifact = await self._require(document_id)
        if artifact.status is not ProcessingStatus.COMPLETED:
            raise InvalidState(
                f"Document {document_id} cannot be trained while its status is {artifact.status.value}"
            )
        await self._client.post(
            f"/processing/documents/{document_id}/train/", whelp_token=whelp_token
        )
        current = self._artifacts.get(document_id, artifact)
        self._track(replace(current, embedding_status=ProcessingStatus.PROCESSING))
        self.invalidate_listing()
        logger.info("documents.training.started id=%s", document_id)

    async def reembed(self, document_id: str) -> None:
        artifact = await self._require(document_id)
        await self._client.post(f"/processing/documents/{document_id}/reembed/")
        current = self._artifacts.get(document_id, artifact)
        self._track(replace(current, embedding_status=ProcessingStatus.PENDING))
        self.invalidate_listing()
        logger.info("documents.reembed.requested id=%s status=%s", document_id, artifact.status.value)

    async def remove(self, document_id: str, *, whelp_token: str | None = None) -> None:
        artifact = self._artifacts.get(document_id)
        if artifact is not None:
            self._artifacts[document_id] = replace(artifact, delete_requested=True)
        try:
            await self._client.delete(
                f"/processing/documents/{document_id}/", whelp_token=whelp_token
            )
        except NotFound:
            logger.debug("documents.remove.already_absent id=%s", document_id)
        except Exception:
            if artifact is not None:
                self._artifacts[document_id] = artifact
            raise
        self._artifacts.pop(document_id, None)
        # Replies to polls issued before the delete must not re-track it.
        self._applied[document_id] = self.next_ticket(document_id)
        self.invalidate_listing()
        logger.info("documents.removed id=%s", document_id)

    # Reads ------------------------------------------------------------

    async def get(self, document_id: str) -> Artifact:
        """Load the server record for ``document_id`` and track it."""

        response = await self._client.get(f"/processing/documents/{document_id}/")
        artifact = Artifact.from_payload(unwrap_object(response, what="document"))
        self._track(artifact)
        return artifact

    async def list_documents(
        self,
        *,
        page: int | None = None,
        page_size: int | None = None,
        access_level: str | None = None,
        processing_status: str | None = None,
        content_type: str | None = None,
        search: str | None = None,
        ordering: str | None = None,
        whelp_token: str | None = None,
        refresh: bool = False,
    ) -> DocumentPage:
        params = {
            "page": page,
            "page_size": page_size,
            "access_level": access_level,
            "processing_status": processing_status,
            "content_type": content_type,
            "search": search,
            "ordering": ordering,
        }
        key = (whelp_token,) + tuple(sorted((k, v) for k, v in params.items() if v is not None))
        cached = self._listing_cache.get(key)
        if cached is not None and not refresh:
            return cached
        response = await self._client.get(
            "/processing/documents/", params, whelp_token=whelp_token
        )
        listing = DocumentPage.from_payload(unwrap_object(response, what="document_listing"))
        self._listing_cache[key] = listing
        return listing

    # Internal helpers -------------------------------------------------

    async def _require(self, document_id: str) -> Artifact:
        artifact = self._artifacts.get(document_id)
        if artifact is None:
            artifact = await self.get(document_id)
        return artifact

    def _track(self, artifact: Artifact) -> None:
        previous = self._artifacts.get(artifact.id)
        self._artifacts[artifact.id] = artifact
        if previous == artifact:
            return
        if previous is not None and previous.status is not artifact.status:
            logger.info(
                "documents.status.changed id=%s from=%s to=%s",
                artifact.id,
                previous.status.value,
                artifact.status.value,
            )
        for listener in list(self._listeners):
            listener(artifact)


def _parse_enum(enum_cls, value: Any, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Unknown {label} '{value}' (expected one of: {choices})") from exc


def _required_text(payload: Mapping[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required")
    return value


def _read_file(spec: Any) -> tuple[str, bytes]:
    if spec is None:
        raise ValidationError("file is required")
    if isinstance(spec, tuple):
        filename, content = spec
        if not filename:
            raise ValidationError("file name is required")
        if isinstance(content, str):
            content = content.encode("utf-8")
        return str(filename), bytes(content)
    path = Path(spec)
    if not path.is_file():
        raise ValidationError(f"File {path} does not exist")
    return path.name, path.read_bytes()
