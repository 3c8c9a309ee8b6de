from __future__ import annotations

from pathlib import Path

import pytest

from whelp_client.config import Settings


def test_defaults() -> None:
    settings = Settings()

    assert settings.api_base_url == "https://api.whelp.ai"
    assert settings.access_token_ttl_days == 7
    assert settings.refresh_token_ttl_days == 30
    assert settings.search_limit == 20
    assert settings.document_search_similarity_threshold == 0.3


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WHELP_API_URL", "https://staging.whelp.test/")
    monkeypatch.setenv("WHELP_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("WHELP_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("WHELP_SEARCH_SIMILARITY_THRESHOLD", "0")
    monkeypatch.setenv("WHELP_SEARCH_LIMIT", "0")
    monkeypatch.setenv("OBSERVABILITY_METRICS_ENABLED", "off")

    settings = Settings.from_env()

    assert settings.api_base_url == "https://staging.whelp.test"
    assert settings.request_timeout == 2.5
    assert settings.search_similarity_threshold == 0.0
    assert settings.search_limit == 1
    assert settings.observability_metrics_enabled is False
    assert settings.credential_file == tmp_path / "credentials.json"


def test_state_dir_expands_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))

    assert Settings(state_dir="~/.whelp").state_path == tmp_path / ".whelp"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("OBSERVABILITY_PROMETHEUS_ENABLED", "maybe"),
        ("WHELP_ACCESS_TOKEN_TTL_DAYS", "seven"),
        ("WHELP_STATUS_POLL_INTERVAL", "soon"),
    ],
)
def test_invalid_values_raise(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=name):
        Settings.from_env()
