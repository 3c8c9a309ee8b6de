"""Typed records exchanged between the client components and their callers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .errors import MalformedResponse


logger = logging.getLogger(__name__)


class ProcessingStatus(str, Enum):
    """Progress of a lifecycle or embedding state machine."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)

    @classmethod
    def parse(cls, value: Any, *, default: "ProcessingStatus | None" = None) -> "ProcessingStatus":
        if value is None or value == "":
            if default is None:
                raise MalformedResponse("Missing processing status")
            return default
        try:
            return cls(str(value).lower())
        except ValueError as exc:
            logger.error("models.status.unknown value=%s", value)
            raise MalformedResponse(f"Unknown processing status '{value}'") from exc


class SourceKind(str, Enum):
    FILE = "file"
    TEXT = "text"
    WEBPAGE = "webpage"


class AccessLevel(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    TEAM = "team"


class MatchType(str, Enum):
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


class BillingInterval(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(slots=True)
class Identity:
    """Snapshot of the authenticated user's profile."""

    id: str
    email: str
    role: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    department: str | None = None
    phone: str | None = None
    profile_photo: str | None = None
    is_verified: bool = False
    is_email_verified: bool | None = None
    date_joined: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Identity":
        if not isinstance(payload, Mapping) or payload.get("id") is None:
            raise MalformedResponse("User profile is missing an id", payload=payload)
        return cls(
            id=str(payload["id"]),
            email=str(payload.get("email") or ""),
            role=payload.get("role"),
            first_name=payload.get("first_name"),
            last_name=payload.get("last_name"),
            company=payload.get("company"),
            department=payload.get("department"),
            phone=payload.get("phone"),
            profile_photo=payload.get("profile_photo"),
            is_verified=bool(payload.get("is_verified", False)),
            is_email_verified=payload.get("is_email_verified"),
            date_joined=payload.get("date_joined"),
            created_at=payload.get("created_at"),
            updated_at=payload.get("updated_at"),
            raw=dict(payload),
        )

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email


@dataclass(slots=True)
class Artifact:
    """One submitted content unit and its two independent state machines."""

    id: str
    source_kind: SourceKind | None = None
    access_level: str | None = None
    title: str | None = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    embedding_status: ProcessingStatus = ProcessingStatus.PENDING
    error: str | None = None
    created_at: str | None = None
    processed_at: str | None = None
    delete_requested: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Artifact":
        if not isinstance(payload, Mapping) or payload.get("id") is None:
            raise MalformedResponse("Document record is missing an id", payload=payload)
        # ``status`` is authoritative; ``processing_status`` is the legacy name.
        lifecycle = payload.get("status") or payload.get("processing_status")
        embedding = payload.get("embedding_status") or payload.get("training_status")
        kind = payload.get("content_type")
        error_details = payload.get("error_details")
        error = payload.get("error_message")
        if isinstance(error_details, Mapping) and error_details.get("message"):
            error = error_details["message"]
        return cls(
            id=str(payload["id"]),
            source_kind=SourceKind(kind) if kind in SourceKind._value2member_map_ else None,
            access_level=payload.get("access_level"),
            title=payload.get("title"),
            status=ProcessingStatus.parse(lifecycle, default=ProcessingStatus.PENDING),
            embedding_status=ProcessingStatus.parse(embedding, default=ProcessingStatus.PENDING),
            error=error,
            created_at=payload.get("created_at"),
            processed_at=payload.get("processed_at"),
        )


@dataclass(slots=True)
class StatusSnapshot:
    """A single read of an artifact's processing progress."""

    document_id: str
    status: ProcessingStatus
    progress: float = 0.0
    message: str | None = None
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    sequence: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, sequence: int = 0) -> "StatusSnapshot":
        if not isinstance(payload, Mapping) or payload.get("document_id") is None:
            raise MalformedResponse("Processing status is missing document_id", payload=payload)
        try:
            progress = float(payload.get("progress") or 0.0)
        except (TypeError, ValueError) as exc:
            raise MalformedResponse("Processing progress is not numeric", payload=payload) from exc
        return cls(
            document_id=str(payload["document_id"]),
            status=ProcessingStatus.parse(payload.get("status")),
            progress=progress,
            message=payload.get("message"),
            error=payload.get("error"),
            started_at=payload.get("started_at"),
            completed_at=payload.get("completed_at"),
            sequence=sequence,
        )


@dataclass(slots=True)
class TrainingInfo:
    document_id: str
    training_status: ProcessingStatus
    embedding_count: int = 0
    chunk_count: int = 0
    training_progress: float = 0.0
    started_at: str | None = None
    completed_at: str | None = None
    error_message: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TrainingInfo":
        if not isinstance(payload, Mapping) or payload.get("document_id") is None:
            raise MalformedResponse("Training info is missing document_id", payload=payload)
        return cls(
            document_id=str(payload["document_id"]),
            training_status=ProcessingStatus.parse(
                payload.get("training_status"), default=ProcessingStatus.PENDING
            ),
            embedding_count=int(payload.get("embedding_count") or 0),
            chunk_count=int(payload.get("chunk_count") or 0),
            training_progress=float(payload.get("training_progress") or 0.0),
            started_at=payload.get("started_at"),
            completed_at=payload.get("completed_at"),
            error_message=payload.get("error_message"),
        )


@dataclass(slots=True)
class DocumentPage:
    """One page of the document listing."""

    results: list[Artifact]
    count: int
    next: str | None = None
    previous: str | None = None
    page: int | None = None
    page_size: int | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DocumentPage":
        results = payload.get("results") if isinstance(payload, Mapping) else None
        if not isinstance(results, list):
            raise MalformedResponse("Document listing has no results list", payload=payload)
        return cls(
            results=[Artifact.from_payload(item) for item in results],
            count=int(payload.get("count", len(results)) or 0),
            next=payload.get("next"),
            previous=payload.get("previous"),
            page=payload.get("page"),
            page_size=payload.get("page_size"),
        )


@dataclass(slots=True)
class SearchMatch:
    """A single scored chunk in a flattened search result."""

    document_id: str
    document_title: str | None
    chunk_id: str | None
    chunk_index: int | None
    text: str
    score: float
    match_type: MatchType
    highlighted_text: str | None = None
    page_number: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SearchResultSet:
    """Ordered matches for one query plus the server's aggregate counters."""

    query: str
    matches: list[SearchMatch] = field(default_factory=list)
    total_count: int = 0
    total_documents: int = 0
    current_page: int = 1
    total_pages: int = 1
    has_next: bool = False
    has_previous: bool = False
    processing_time: float | None = None

    def __len__(self) -> int:
        return len(self.matches)

    def __iter__(self):
        return iter(self.matches)

    @property
    def document_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for match in self.matches:
            seen.setdefault(match.document_id, None)
        return list(seen)


@dataclass(slots=True)
class Plan:
    """A subscription plan and the quotas it grants."""

    id: str
    name: str
    price: float = 0.0
    currency: str | None = None
    billing_interval: BillingInterval | None = None
    description: str | None = None
    features: list[str] = field(default_factory=list)
    limits: dict[str, int] = field(default_factory=dict)
    is_popular: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Plan":
        if not isinstance(payload, Mapping) or payload.get("id") is None:
            raise MalformedResponse("Plan is missing an id", payload=payload)
        interval = payload.get("billing_interval")
        limits = payload.get("limits") or {}
        features = payload.get("features") or []
        if not isinstance(limits, Mapping) or not isinstance(features, list):
            raise MalformedResponse("Plan limits or features have an unexpected shape", payload=payload)
        try:
            return cls(
                id=str(payload["id"]),
                name=str(payload.get("name") or ""),
                price=float(payload.get("price") or 0.0),
                currency=payload.get("currency"),
                billing_interval=BillingInterval(interval) if interval else None,
                description=payload.get("description"),
                features=[str(item) for item in features],
                limits={str(key): int(value) for key, value in limits.items() if value is not None},
                is_popular=bool(payload.get("is_popular", False)),
            )
        except (TypeError, ValueError) as exc:
            raise MalformedResponse(f"Plan {payload['id']} has invalid values", payload=payload) from exc


@dataclass(slots=True)
class PlanUsage:
    documents_used: int = 0
    storage_used: int = 0
    api_calls_used: int = 0
    team_members: int = 0

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "PlanUsage":
        payload = payload or {}
        try:
            return cls(**{name: int(payload.get(name) or 0) for name in cls.__dataclass_fields__})
        except (TypeError, ValueError) as exc:
            raise MalformedResponse("Plan usage counters are not numeric", payload=payload) from exc


@dataclass(slots=True)
class CurrentPlan:
    """The account's active subscription and what it has consumed."""

    plan: Plan
    subscription_id: str | None = None
    status: str | None = None
    current_period_start: str | None = None
    current_period_end: str | None = None
    auto_renew: bool = False
    usage: PlanUsage = field(default_factory=PlanUsage)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CurrentPlan":
        if not isinstance(payload, Mapping) or not isinstance(payload.get("plan"), Mapping):
            raise MalformedResponse("Current plan response has no plan", payload=payload)
        usage = payload.get("usage")
        return cls(
            plan=Plan.from_payload(payload["plan"]),
            subscription_id=payload.get("subscription_id"),
            status=payload.get("status"),
            current_period_start=payload.get("current_period_start"),
            current_period_end=payload.get("current_period_end"),
            auto_renew=bool(payload.get("auto_renew", False)),
            usage=PlanUsage.from_payload(usage if isinstance(usage, Mapping) else None),
        )

    def remaining(self, limit: str) -> int | None:
        """Units left under ``limit`` (``documents``, ``storage``...); ``None`` if unlimited."""

        cap = self.plan.limits.get(limit)
        if cap is None:
            return None
        used_field = "team_members" if limit == "team_members" else f"{limit}_used"
        used = getattr(self.usage, used_field, 0)
        return max(cap - used, 0)


@dataclass(slots=True)
class UsageItem:
    id: str
    type: str
    description: str = ""
    timestamp: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UsageItem":
        if not isinstance(payload, Mapping) or payload.get("id") is None:
            raise MalformedResponse("Usage item is missing an id", payload=payload)
        metadata = payload.get("metadata")
        return cls(
            id=str(payload["id"]),
            type=str(payload.get("type") or ""),
            description=str(payload.get("description") or ""),
            timestamp=payload.get("timestamp"),
            metadata=dict(metadata) if isinstance(metadata, Mapping) else {},
        )


@dataclass(slots=True)
class UsagePage:
    items: list[UsageItem]
    total_count: int

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UsagePage":
        items = payload.get("usage_items") if isinstance(payload, Mapping) else None
        if not isinstance(items, list):
            raise MalformedResponse("Usage stream has no usage_items list", payload=payload)
        parsed = [UsageItem.from_payload(item) for item in items]
        try:
            total = int(payload.get("total_count", len(parsed)))
        except (TypeError, ValueError) as exc:
            raise MalformedResponse("Usage total_count is not numeric", payload=payload) from exc
        return cls(items=parsed, total_count=total)
