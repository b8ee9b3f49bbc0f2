"""Pelican client command line.

Changes:
  - 2026-10-17: Added --resume to replay a listing/download after login.
  - 2026-10-16: Added login (loopback callback server) and callback subcommands.
  - 2026-10-15: Initial ls/get/put commands.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import webbrowser
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import httpx
from rich.console import Console
from rich.table import Table

from pelicanclient.callback_server import run_callback_server
from pelicanclient.client import PelicanClient
from pelicanclient.config import Settings
from pelicanclient.errors import PelicanError, UnauthenticatedError
from pelicanclient.logging_setup import setup_logging
from pelicanclient.models import ObjectListEntry, Operation, QueuedRequest
from pelicanclient.tokens import get_usable_token

logger = logging.getLogger(__name__)
console = Console()
err_console = Console(stderr=True)

EXIT_ERROR = 1
EXIT_LOGIN_REQUIRED = 2

_RESUME_OPERATIONS = {"ls": Operation.PROPFIND, "get": Operation.GET}


def _version() -> str:
    try:
        return get_version("pelican-client")
    except PackageNotFoundError:
        return "unknown"


def _format_time(epoch: int | None) -> str:
    if epoch is None:
        return "never"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat(timespec="seconds")


def print_listing(url: str, entries: list[ObjectListEntry]) -> None:
    table = Table(title=url, show_edge=False)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for entry in entries:
        name = entry.name + ("/" if entry.is_collection else "")
        size = "" if entry.is_collection else str(entry.content_length)
        table.add_row(name, size, entry.last_modified)
    console.print(table)


async def cmd_ls(client: PelicanClient, args: argparse.Namespace) -> int:
    print_listing(args.url, await client.list(args.url, use_cache=not args.no_cache))
    return 0


async def cmd_get(client: PelicanClient, args: argparse.Namespace) -> int:
    target = await client.download(args.url, Path(args.output or "."))
    console.print(f"Saved {target}")
    return 0


async def cmd_put(client: PelicanClient, args: argparse.Namespace) -> int:
    address = await client.upload(Path(args.file), args.url)
    console.print(f"Uploaded {args.file} to {address}")
    return 0


def _print_resumed(
    resumed: tuple[QueuedRequest, list[ObjectListEntry] | httpx.Response] | None,
) -> None:
    if resumed is None:
        return
    queued, outcome = resumed
    if isinstance(outcome, httpx.Response):
        name = queued.path.rstrip("/").rsplit("/", 1)[-1] or "object"
        Path(name).write_bytes(outcome.content)
        console.print(f"Saved {name}")
    elif queued.operation is Operation.PROPFIND:
        print_listing(queued.object_url, outcome)


async def cmd_login(client: PelicanClient, args: argparse.Namespace) -> int:
    operation = _RESUME_OPERATIONS.get(args.resume) if args.resume else None
    request = await client.login(args.url, operation=operation)

    console.print("Open this URL to authorize:")
    console.print(request.url, soft_wrap=True)
    if not args.no_browser:
        webbrowser.open(request.url)

    if args.no_wait:
        console.print("Then run: pelican-client callback '<redirect url>'")
        return 0

    outcome = await run_callback_server(client, timeout=args.timeout)
    if outcome.result is None:
        err_console.print(f"[red]Login failed:[/red] {outcome.error}")
        return EXIT_ERROR

    console.print(f"Logged in to {outcome.result.namespace_prefix}")
    _print_resumed(await client.resume_queued_request())
    return 0


async def cmd_callback(client: PelicanClient, args: argparse.Namespace) -> int:
    result = await client.complete_login(args.redirect_url)
    console.print(f"Logged in to {result.namespace_prefix} on {result.federation_hostname}")
    _print_resumed(await client.resume_queued_request())
    return 0


async def cmd_whoami(client: PelicanClient, args: argparse.Namespace) -> int:
    _, namespace = await client.ensure_metadata(args.url)
    token = get_usable_token(namespace)
    console.print(f"Namespace: {namespace.prefix}")
    if token is None:
        console.print("Not logged in")
        return 0

    console.print(f"Subject:   {token.subject or '-'}")
    console.print(f"Issuer:    {token.issuer or '-'}")
    console.print(f"Expires:   {_format_time(token.expiry)}")
    for collection in await client.collections(args.url):
        perms = ", ".join(sorted(p.value for p in collection.permissions))
        console.print(f"  {collection.object_path}: {perms}")
    permissions = [p.value for p in await client.permissions(args.url)]
    console.print(f"Permissions on {args.url}: {', '.join(permissions) or 'none'}")
    return 0


async def cmd_logout(client: PelicanClient, args: argparse.Namespace) -> int:
    if client.logout(args.url):
        console.print("Token cleared")
    else:
        console.print("No token stored for this namespace")
    return 0


COMMANDS = {
    "ls": cmd_ls,
    "get": cmd_get,
    "put": cmd_put,
    "login": cmd_login,
    "callback": cmd_callback,
    "whoami": cmd_whoami,
    "logout": cmd_logout,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pelican-client",
        description="Browse, download and upload objects in a Pelican federation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pelican-client ls pelican://osg-htc.org/ospool/data/
  pelican-client get pelican://osg-htc.org/ospool/data/file.txt -o /tmp
  pelican-client login pelican://osg-htc.org/ospool/data/ --resume ls
""",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--session-file", help="Session file (default: ~/.pelican-client/session.json)"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")

    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("ls", help="List a collection")
    ls.add_argument("url")
    ls.add_argument("--no-cache", action="store_true", help="Bypass the listing cache")

    get = sub.add_parser("get", help="Download an object")
    get.add_argument("url")
    get.add_argument("-o", "--output", help="Destination file or directory")

    put = sub.add_parser("put", help="Upload a local file")
    put.add_argument("file")
    put.add_argument("url", help="Object URL, or a collection URL ending in /")

    login = sub.add_parser("login", help="Authorize against the namespace owning URL")
    login.add_argument("url")
    login.add_argument("--no-browser", action="store_true", help="Only print the URL")
    login.add_argument(
        "--no-wait", action="store_true", help="Do not run the local callback server"
    )
    login.add_argument("--resume", choices=sorted(_RESUME_OPERATIONS), help="Replay after login")
    login.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait")

    callback = sub.add_parser("callback", help="Complete a login from the redirect URL")
    callback.add_argument("redirect_url")

    whoami = sub.add_parser("whoami", help="Show the token and permissions for URL")
    whoami.add_argument("url")

    logout = sub.add_parser("logout", help="Forget the token for URL's namespace")
    logout.add_argument("url")

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with PelicanClient(settings=settings) as client:
        return await COMMANDS[args.command](client, args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    updates = {"session_file": args.session_file} if args.session_file else {}
    settings = Settings.load().model_copy(update=updates)
    setup_logging(level="DEBUG" if args.verbose else settings.log_level)

    try:
        return asyncio.run(run(args, settings))
    except UnauthenticatedError as e:
        err_console.print(f"[red]{e}[/red]")
        resume = f" --resume {args.command}" if args.command in _RESUME_OPERATIONS else ""
        err_console.print(f"Run: pelican-client login {getattr(args, 'url', 'URL')}{resume}")
        return EXIT_LOGIN_REQUIRED
    except (PelicanError, OSError) as e:
        logger.debug("Command failed", exc_info=True)
        err_console.print(f"[red]Error:[/red] {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
