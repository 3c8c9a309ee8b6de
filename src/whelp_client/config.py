"""Configuration helpers for the Whelp client."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Final

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_API_BASE_URL: Final[str] = "https://api.whelp.ai"
_DEFAULT_REQUEST_TIMEOUT: Final[float] = 10.0
_DEFAULT_STATE_DIR: Final[str] = "~/.whelp"
_DEFAULT_ACCESS_TOKEN_TTL_DAYS: Final[int] = 7
_DEFAULT_REFRESH_TOKEN_TTL_DAYS: Final[int] = 30
_DEFAULT_STATUS_POLL_INTERVAL: Final[float] = 5.0
_DEFAULT_SEARCH_LIMIT: Final[int] = 20
_DEFAULT_SEARCH_SIMILARITY_THRESHOLD: Final[float] = 0.5
_DEFAULT_DOCUMENT_SEARCH_LIMIT: Final[int] = 10
_DEFAULT_DOCUMENT_SEARCH_SIMILARITY_THRESHOLD: Final[float] = 0.3
_DEFAULT_OBSERVABILITY_NAMESPACE: Final[str] = "whelp_client"


def _env_optional_bool(name: str) -> bool | None:
    """Read an optional boolean environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    msg = f"Environment variable {name} must be a boolean value (true/false)."
    raise ValueError(msg)


def _env_optional_int(name: str) -> int | None:
    """Read an optional integer environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _env_optional_float(name: str) -> float | None:
    """Read an optional float environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _env_int(name: str, default: int) -> int:
    value = _env_optional_int(name)
    return default if value is None else value


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable with a fallback (preserving zero)."""

    value = _env_optional_float(name)
    return default if value is None else value


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean environment variable with a fallback."""

    value = _env_optional_bool(name)
    if value is None:
        return default
    return value


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    api_base_url: str = _DEFAULT_API_BASE_URL
    request_timeout: float = _DEFAULT_REQUEST_TIMEOUT
    state_dir: str = _DEFAULT_STATE_DIR
    access_token_ttl_days: int = _DEFAULT_ACCESS_TOKEN_TTL_DAYS
    refresh_token_ttl_days: int = _DEFAULT_REFRESH_TOKEN_TTL_DAYS
    status_poll_interval: float = _DEFAULT_STATUS_POLL_INTERVAL
    search_limit: int = _DEFAULT_SEARCH_LIMIT
    search_similarity_threshold: float = _DEFAULT_SEARCH_SIMILARITY_THRESHOLD
    document_search_limit: int = _DEFAULT_DOCUMENT_SEARCH_LIMIT
    document_search_similarity_threshold: float = _DEFAULT_DOCUMENT_SEARCH_SIMILARITY_THRESHOLD
    observability_metrics_enabled: bool = True
    observability_namespace: str = _DEFAULT_OBSERVABILITY_NAMESPACE
    observability_prometheus_enabled: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings by reading environment variables."""

        return cls(
            api_base_url=os.getenv("WHELP_API_URL", _DEFAULT_API_BASE_URL).rstrip("/"),
            request_timeout=_env_float("WHELP_REQUEST_TIMEOUT", _DEFAULT_REQUEST_TIMEOUT),
            state_dir=os.getenv("WHELP_STATE_DIR", _DEFAULT_STATE_DIR),
            access_token_ttl_days=max(
                1, _env_int("WHELP_ACCESS_TOKEN_TTL_DAYS", _DEFAULT_ACCESS_TOKEN_TTL_DAYS)
            ),
            refresh_token_ttl_days=max(
                1, _env_int("WHELP_REFRESH_TOKEN_TTL_DAYS", _DEFAULT_REFRESH_TOKEN_TTL_DAYS)
            ),
            status_poll_interval=max(
                0.1, _env_float("WHELP_STATUS_POLL_INTERVAL", _DEFAULT_STATUS_POLL_INTERVAL)
            ),
            search_limit=max(1, _env_int("WHELP_SEARCH_LIMIT", _DEFAULT_SEARCH_LIMIT)),
            search_similarity_threshold=_env_float(
                "WHELP_SEARCH_SIMILARITY_THRESHOLD", _DEFAULT_SEARCH_SIMILARITY_THRESHOLD
            ),
            document_search_limit=max(
                1, _env_int("WHELP_DOCUMENT_SEARCH_LIMIT", _DEFAULT_DOCUMENT_SEARCH_LIMIT)
            ),
            document_search_similarity_threshold=_env_float(
                "WHELP_DOCUMENT_SEARCH_SIMILARITY_THRESHOLD",
                _DEFAULT_DOCUMENT_SEARCH_SIMILARITY_THRESHOLD,
            ),
            observability_metrics_enabled=_env_bool("OBSERVABILITY_METRICS_ENABLED", True),
            observability_namespace=os.getenv(
                "OBSERVABILITY_NAMESPACE", _DEFAULT_OBSERVABILITY_NAMESPACE
            ),
            observability_prometheus_enabled=_env_bool("OBSERVABILITY_PROMETHEUS_ENABLED", False),
        )

    @property
    def state_path(self) -> Path:
        """Return the expanded directory holding durable client state."""

        return Path(self.state_dir).expanduser()

    @property
    def credential_file(self) -> Path:
        return self.state_path / "credentials.json"
