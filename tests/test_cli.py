from __future__ import annotations

import pytest

from conftest import LOGIN_TOKENS_LAYOUT
from whelp_client.scripts import cli


@pytest.fixture()
def run_cli(whelp, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(cli, "WhelpClient", lambda: whelp)
    return cli.main


def test_whoami_restores_saved_session(run_cli, whelp, server, capsys) -> None:
    whelp.session.establish(LOGIN_TOKENS_LAYOUT)
    whelp.credentials.clear()
    server.add("GET", "/auth/profile/", LOGIN_TOKENS_LAYOUT["user"])

    assert run_cli(["whoami"]) == 0

    assert capsys.readouterr().out.strip() == "u1\tx@y.com\taccount_holder"


def test_commands_without_session_ask_for_login(run_cli, server, capsys) -> None:
    assert run_cli(["list"]) == 1

    assert "whelp login" in capsys.readouterr().err
    assert server.requests == []


def test_text_submission_with_whelp_token(run_cli, server, tmp_path, capsys) -> None:
    source = tmp_path / "note.txt"
    source.write_text("hello there", encoding="utf-8")
    server.add("POST", "/processing/text/", {"document_id": "t1"})

    assert run_cli(["--whelp-token", "wt", "text", "--title", "Note", "--file", str(source)]) == 0

    assert capsys.readouterr().out.strip() == "t1"
    assert server.requests[0].headers["X-Whelp-Token"] == "wt"


def test_search_prints_ranked_matches(run_cli, whelp, server, capsys) -> None:
    whelp.session.establish(LOGIN_TOKENS_LAYOUT)
    server.add("GET", "/auth/profile/", LOGIN_TOKENS_LAYOUT["user"])
    server.add(
        "POST",
        "/processing/search/",
        {
            "results": {
                "results": [
                    {
                        "document_id": "A",
                        "document_title": "Handbook",
                        "chunks": [{"chunk_text": "hello team", "semantic_score": 0.91}],
                    }
                ],
                "total_results": 1,
            }
        },
    )

    assert run_cli(["search", "hello"]) == 0

    out = capsys.readouterr().out
    assert 'Found 1 results for "hello"' in out
    assert "1. [semantic 0.910] Handbook" in out


def test_api_errors_exit_with_message(run_cli, whelp, server, capsys) -> None:
    whelp.session.establish(LOGIN_TOKENS_LAYOUT)
    server.add("GET", "/auth/profile/", LOGIN_TOKENS_LAYOUT["user"])
    server.add("POST", "/processing/documents/d1/reembed/", {"message": "Server exploded"}, status=500)
    server.add("GET", "/processing/documents/d1/", {"id": "d1", "status": "completed"})

    assert run_cli(["reembed", "d1"]) == 1

    assert "Server exploded" in capsys.readouterr().err


def test_plan_shows_remaining_quota(run_cli, whelp, server, capsys) -> None:
    whelp.session.establish(LOGIN_TOKENS_LAYOUT)
    server.add("GET", "/auth/profile/", LOGIN_TOKENS_LAYOUT["user"])
    server.add(
        "GET",
        "/home/plans/current/",
        {
            "plan": {"id": "pro", "name": "Pro", "limits": {"documents": 500}},
            "status": "active",
            "current_period_end": "2026-11-01",
            "usage": {"documents_used": 120},
        },
    )

    assert run_cli(["plan"]) == 0

    out = capsys.readouterr().out
    assert "Pro (active), renews 2026-11-01" in out
    assert "documents: 380 of 500 left" in out
