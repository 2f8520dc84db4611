#!/usr/bin/env python3
"""
Sign in to ArcGIS for the NCNG template saver.

The session is stored in session.json in the repo root (NCNG_SESSION_FILE
to override) and picked up by server.py and cli.py.

Usage:
    uv run python -m auth                         # Auto mode (opens browser)
    uv run python -m auth --manual                # Manual mode (copy-paste URL)
    uv run python -m auth --response-type code    # PKCE code flow (refreshable session)
    uv run python -m auth --code 'http://localhost:3000/#access_token=...'
    uv run python -m auth --sign-out

Prerequisites:
    - NCNG_CLIENT_ID set to the portal app's client id
    - The app's redirect URI registered as NCNG_REDIRECT_URI (default http://localhost:3000/)
"""

import argparse
import asyncio
import os
import sys

from logging_config import configure_logging
from models import Authenticated, AuthenticationError, PortalError, ResponseType
from portal_config import PortalConfig
from tools import AppContext


def _is_interactive() -> bool:
    """Check if we're running in an interactive terminal."""
    return sys.stdin.isatty() and bool(os.environ.get("DISPLAY", os.environ.get("WAYLAND_DISPLAY", "")))


async def _sign_in(ctx: AppContext, response_type: ResponseType, manual: bool, code: str | None) -> str:
    if code is None:
        url = ctx.begin_sign_in(response_type, manual=manual)
        if manual:
            print("Open this URL in a browser and sign in:")
            print()
            print(f"  {url}")
            print()
        else:
            print("Browser opened for sign-in.")
        print("After signing in, the browser lands on the redirect address.")
        code = input("Paste the full address from the browser: ").strip()

    session = await ctx.complete_sign_in(code)
    if not isinstance(session, Authenticated):
        raise AuthenticationError("Sign-in did not complete. Start again.")
    return session.subject


async def _run(args: argparse.Namespace) -> None:
    config = PortalConfig.from_env()
    ctx = AppContext(config)
    try:
        if args.sign_out:
            await ctx.start()
            await ctx.sign_out()
            print(f"Signed out. {config.session_file} cleared.")
            return

        response_type = ResponseType(args.response_type)
        manual = args.manual or bool(args.code)
        if not manual and not _is_interactive():
            print("No display detected — using manual mode.")
            manual = True

        username = await _sign_in(ctx, response_type, manual, args.code)
        print()
        print(f"Signed in as {username}. {config.session_file} created.")
    finally:
        await ctx.aclose()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="ArcGIS sign-in for the NCNG template saver"
    )
    parser.add_argument(
        '--manual',
        action='store_true',
        help='Manual mode: print the sign-in URL instead of opening a browser'
    )
    parser.add_argument(
        '--code',
        type=str,
        help='Redirect address after signing in (non-interactive, token mode)'
    )
    parser.add_argument(
        '--response-type',
        choices=[t.value for t in ResponseType],
        default=ResponseType.TOKEN.value,
        help='token (implicit, default) or code (PKCE, refreshable)'
    )
    parser.add_argument(
        '--sign-out',
        action='store_true',
        help='Revoke and forget the stored session'
    )
    parser.add_argument('--log-level', default='WARNING', help='Log level (default: WARNING)')

    args = parser.parse_args()
    configure_logging(args.log_level)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("\n\nSign-in cancelled")
        sys.exit(1)
    except PortalError as e:
        print(f"\nSign-in failed: {e.message}")
        sys.exit(1)


if __name__ == '__main__':
    main()
