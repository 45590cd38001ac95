"""CLI entrypoints for connector operational tasks."""

from __future__ import annotations

import argparse
import asyncio
import json
from collections.abc import Sequence

from fedbridge.config import configure_structlog, get_settings
from fedbridge.connector import open_connector
from fedbridge.models import Scopes


async def _run_discover() -> int:
    """Discover the provider and print the endpoints the connector will use."""
    settings = get_settings()
    configure_structlog(settings)
    async with await open_connector(settings.connector) as connector:
        metadata = connector.metadata
        report = {
            "issuer": metadata.issuer,
            "mode": connector.protocol.name,
            "authorization_endpoint": metadata.authorization_endpoint,
            "token_endpoint": metadata.token_endpoint,
            "userinfo_endpoint": metadata.userinfo_endpoint,
            "introspection_endpoint": metadata.introspection_endpoint,
            "jwks_uri": metadata.jwks_uri,
            "scopes": settings.connector.oauth_scopes,
        }
    print(json.dumps(report))
    return 0


async def _run_login_url(state: str, offline_access: bool) -> int:
    """Print the login URL the connector would redirect a browser to."""
    settings = get_settings()
    configure_structlog(settings)
    async with await open_connector(settings.connector) as connector:
        url = connector.login_url(
            scopes=Scopes(offline_access=offline_access),
            callback_url=settings.connector.redirect_uri,
            state=state,
        )
    print(json.dumps({"url": url}))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build command-line parser for supported operational commands."""
    parser = argparse.ArgumentParser(prog="python -m fedbridge.cli")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("discover", help="Check provider discovery and print the mode.")

    login_parser = subcommands.add_parser("login-url", help="Print a login URL.")
    login_parser.add_argument("--state", required=True, help="Opaque state value to embed.")
    login_parser.add_argument(
        "--offline-access",
        action="store_true",
        help="Request offline access (refresh tokens).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run CLI command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "discover":
        return asyncio.run(_run_discover())
    if args.command == "login-url":
        return asyncio.run(_run_login_url(state=args.state, offline_access=args.offline_access))
    parser.error("Unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
