"""Client library for the Whelp document ingestion and search service."""

from __future__ import annotations

from .config import Settings
from .errors import (
    ApiError,
    InvalidCredentialShape,
    InvalidState,
    MalformedResponse,
    NetworkError,
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    QuotaExceeded,
    UploadError,
    ValidationError,
    WhelpClientError,
)
from .models import (
    AccessLevel,
    Artifact,
    BillingInterval,
    CurrentPlan,
    Identity,
    MatchType,
    Plan,
    ProcessingStatus,
    SearchMatch,
    SearchResultSet,
    SourceKind,
    StatusSnapshot,
    UsagePage,
)
from .search import SearchService, highlight, normalize, single_document

__all__ = [
    "Settings",
    "WhelpClient",
    "SessionManager",
    "DocumentTracker",
    "StatusPoller",
    "SearchService",
    "AccessLevel",
    "Artifact",
    "BillingInterval",
    "CurrentPlan",
    "Plan",
    "UsagePage",
    "Identity",
    "MatchType",
    "ProcessingStatus",
    "SearchMatch",
    "SearchResultSet",
    "SourceKind",
    "StatusSnapshot",
    "highlight",
    "normalize",
    "single_document",
    "WhelpClientError",
    "ApiError",
    "InvalidCredentialShape",
    "InvalidState",
    "MalformedResponse",
    "NetworkError",
    "NotAuthenticated",
    "NotFound",
    "PermissionDenied",
    "QuotaExceeded",
    "UploadError",
    "ValidationError",
]


def __getattr__(name: str):  # pragma: no cover - small helper
    if name == "WhelpClient":
        from .client import WhelpClient

        return WhelpClient
    if name == "SessionManager":
        from .session import SessionManager

        return SessionManager
    if name == "DocumentTracker":
        from .documents import DocumentTracker

        return DocumentTracker
    if name == "StatusPoller":
        from .polling import StatusPoller

        return StatusPoller
    raise AttributeError(f"module 'whelp_client' has no attribute {name}")
