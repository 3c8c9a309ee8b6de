"""Command line access to the Whelp client."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from whelp_client.client import WhelpClient
from whelp_client.errors import NotAuthenticated, WhelpClientError
from whelp_client.models import AccessLevel, SearchResultSet


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="whelp", description="Submit and search documents on Whelp")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--whelp-token",
        dest="whelp_token",
        help="Authenticate ingestion calls with an X-Whelp-Token instead of the saved session",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Log in and save the session")
    login.add_argument("email")
    login.add_argument("--password", help="Password (prompted when omitted)")

    commands.add_parser("logout", help="End the saved session")
    commands.add_parser("whoami", help="Show the logged-in user")

    access_choices = [level.value for level in AccessLevel]

    upload = commands.add_parser("upload", help="Upload a file for ingestion")
    upload.add_argument("path", type=Path)
    upload.add_argument("--access", default="private", choices=access_choices)
    upload.add_argument("--watch", action="store_true", help="Poll until processing finishes")

    text = commands.add_parser("text", help="Submit raw text read from a file or stdin")
    text.add_argument("--title", required=True)
    text.add_argument("--file", type=Path, help="Read text from this file instead of stdin")
    text.add_argument("--access", default="private", choices=access_choices)
    text.add_argument("--watch", action="store_true")

    webpage = commands.add_parser("webpage", help="Submit a web page URL")
    webpage.add_argument("url")
    webpage.add_argument("--access", default="private", choices=access_choices)
    webpage.add_argument("--watch", action="store_true")

    status = commands.add_parser("status", help="Show a document's processing status")
    status.add_argument("document_id")
    status.add_argument("--watch", action="store_true")

    for name, help_text in (
        ("train", "Start embedding generation"),
        ("reembed", "Regenerate embeddings"),
        ("delete", "Delete a document"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("document_id")

    listing = commands.add_parser("list", help="List documents")
    listing.add_argument("--page", type=int)
    listing.add_argument("--page-size", dest="page_size", type=int)
    listing.add_argument("--search")

    search = commands.add_parser("search", help="Hybrid search across documents")
    search.add_argument("query")
    search.add_argument("--document", dest="document_id", help="Search inside one document")
    search.add_argument("--limit", type=int)

    commands.add_parser("plan", help="Show the current plan and its usage")
    return parser


async def _run(args: argparse.Namespace, client: WhelpClient) -> int:
    session = client.session
    documents = client.documents

    if args.command == "login":
        password = args.password or getpass.getpass("Password: ")
        identity = await session.login(args.email, password)
        print(f"Logged in as {identity.display_name} ({identity.email})")
        return 0

    if args.command == "logout":
        try:
            await session.restore()
        except WhelpClientError as exc:
            # restore() has already dropped the stale session
            logger.debug("cli.logout.restore_failed error=%s", exc)
        await session.logout()
        print("Logged out")
        return 0

    if args.whelp_token is None:
        identity = await session.restore()
        if identity is None:
            raise NotAuthenticated("Not logged in")
    else:
        identity = None

    if args.command == "whoami":
        if identity is None:
            raise NotAuthenticated("No saved session")
        print(f"{identity.id}\t{identity.email}\t{identity.role or '-'}")
        return 0

    if args.command in {"upload", "text", "webpage"}:
        if args.command == "upload":
            payload = {"file": args.path}
            kind = "file"
        elif args.command == "text":
            content = args.file.read_text(encoding="utf-8") if args.file else sys.stdin.read()
            payload = {"text": content, "title": args.title}
            kind = "text"
        else:
            payload = {"url": args.url}
            kind = "webpage"
        document_id = await documents.submit(kind, payload, args.access, whelp_token=args.whelp_token)
        print(document_id)
        if args.watch:
            await _watch(client, document_id, args.whelp_token)
        return 0

    if args.command == "status":
        if args.watch:
            await _watch(client, args.document_id, args.whelp_token)
        else:
            snapshot = await documents.poll(args.document_id, whelp_token=args.whelp_token)
            print(_format_snapshot(snapshot))
        return 0

    if args.command == "train":
        await documents.start_training(args.document_id, whelp_token=args.whelp_token)
        print(f"Training started for {args.document_id}")
        return 0

    if args.command == "reembed":
        await documents.reembed(args.document_id)
        print(f"Re-embedding requested for {args.document_id}")
        return 0

    if args.command == "delete":
        await documents.remove(args.document_id, whelp_token=args.whelp_token)
        print(f"Deleted {args.document_id}")
        return 0

    if args.command == "list":
        listing = await documents.list_documents(
            page=args.page,
            page_size=args.page_size,
            search=args.search,
            whelp_token=args.whelp_token,
        )
        for artifact in listing.results:
            print(
                f"{artifact.id}\t{artifact.status.value}\t"
                f"{artifact.embedding_status.value}\t{artifact.title or '-'}"
            )
        print(f"{len(listing.results)} of {listing.count} document{'s' if listing.count != 1 else ''}")
        return 0

    if args.command == "search":
        if args.document_id:
            result = await client.search.search_document(args.document_id, args.query, limit=args.limit)
        else:
            result = await client.search.hybrid_search(args.query, limit=args.limit)
        _print_results(result)
        return 0

    if args.command == "plan":
        current = await client.onboarding.current_plan()
        plan = current.plan
        print(f"{plan.name} ({current.status or '-'}), renews {current.current_period_end or '-'}")
        for limit in sorted(plan.limits):
            print(f"  {limit}: {current.remaining(limit)} of {plan.limits[limit]} left")
        return 0

    raise AssertionError(f"unhandled command {args.command}")  # pragma: no cover


async def _watch(client: WhelpClient, document_id: str, whelp_token: str | None) -> None:
    poller = client.poller(document_id, whelp_token=whelp_token)
    async for snapshot in poller.watch():
        print(_format_snapshot(snapshot))


def _format_snapshot(snapshot) -> str:
    line = f"{snapshot.document_id}\t{snapshot.status.value}\t{snapshot.progress:.0f}%"
    if snapshot.message:
        line = f"{line}\t{snapshot.message}"
    if snapshot.error:
        line = f"{line}\terror: {snapshot.error}"
    return line


def _print_results(result: SearchResultSet) -> None:
    print(f'Found {result.total_count} results for "{result.query}"')
    for position, match in enumerate(result, start=1):
        page = f" p.{match.page_number}" if match.page_number is not None else ""
        title = match.document_title or match.document_id
        print(f"{position}. [{match.match_type.value} {match.score:.3f}] {title}{page}")
        print(f"   {match.text.strip()[:200]}")


async def _main(args: argparse.Namespace) -> int:
    async with WhelpClient() as client:
        return await _run(args, client)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        return asyncio.run(_main(args))
    except NotAuthenticated as exc:
        print(f"error: {exc.message}. Run 'whelp login EMAIL' first.", file=sys.stderr)
        return 1
    except WhelpClientError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:  # pragma: no cover - interactive
        return 130


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
