"""CLI entry point and argument parsing"""

import argparse
import asyncio
import logging
import sys

from rich.console import Console

import settings
from cli.auth_flow import CLIAuthFlow
from desktop_oauth import AuthenticationError, OAuthClient
from utils.logging_setup import setup_logging


console = Console()
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="desktop-oauth",
        description="Sign in with OAuth 2.0 (Authorization Code + PKCE) from the desktop",
    )
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Sign in through the browser")
    login.add_argument(
        "--show-urls",
        action="store_true",
        help="Print the authorization and callback URLs and ask before continuing",
    )
    login.add_argument(
        "--no-browser",
        action="store_true",
        help="Don't open the browser, only print the authorization URL",
    )
    login.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Seconds to wait for the browser redirect (default: {settings.CALLBACK_TIMEOUT:g})",
    )
    login.add_argument(
        "--refresh",
        action="store_true",
        help="Refresh the access token once after signing in",
    )

    subparsers.add_parser("urls", help="Print the URLs of a login attempt and exit")

    return parser


async def _run(args: argparse.Namespace, client: OAuthClient) -> bool:
    flow = CLIAuthFlow(client, console)
    try:
        if args.command == "urls":
            await flow.print_urls()
            return True
        return await flow.login(
            show_urls_first=args.show_urls,
            open_browser=not args.no_browser,
            refresh=args.refresh,
        )
    finally:
        await client.close()


def main(argv=None) -> int:
    """Entry point for the CLI"""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    timeout = getattr(args, "timeout", None)
    client = OAuthClient(callback_timeout=timeout if timeout is not None else settings.CALLBACK_TIMEOUT)

    if not client.is_configured():
        console.print("[red]ERROR:[/red] OAuth is not configured")
        console.print("Set OAUTH_BASE_URL, OAUTH_AUTH_ENDPOINT, OAUTH_TOKEN_ENDPOINT, "
                      "OAUTH_CLIENT_ID and OAUTH_SCOPE, or provide an oauth.json file")
        return 1

    try:
        success = asyncio.run(_run(args, client))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 1
    except AuthenticationError as e:
        console.print(f"\n[red]ERROR:[/red] {e.message}")
        console.print(f"[dim]{e.hint}[/dim]")
        logger.debug(f"Sign-in failed ({e.kind})", exc_info=True)
        return 1
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
