#!/usr/bin/env python3
"""
CLI interface for the NCNG template saver.

Usage:
    ncng title sad "collab ops" geo --env AGOL --fy FY25
    ncng whoami
    ncng folders
    ncng provision sad "collab ops" geo --folder root --summary "..."
    ncng signout

Sign in first with: python -m auth

This provides the same functionality as the MCP tools but via command line.
"""

import argparse
import asyncio
import json
import sys
from typing import Any

from logging_config import configure_logging
from models import PortalError
from portal_config import PortalConfig
from naming import preview_title
from tools import AppContext, choice_from_args


def _print(result: dict[str, Any]) -> None:
    print(json.dumps(result, indent=2))


async def _with_context(args: argparse.Namespace, action) -> dict[str, Any]:
    ctx = AppContext(PortalConfig.from_env())
    try:
        await ctx.start()
        return await action(ctx)
    except PortalError as e:
        return e.to_dict()
    finally:
        await ctx.aclose()


def cmd_title(args: argparse.Namespace) -> None:
    """Build and validate a canonical title."""
    _print(preview_title(args.portfolio, args.purpose, args.owner, args.env, args.fy))


def cmd_whoami(args: argparse.Namespace) -> None:
    """Show the stored session."""
    async def action(ctx: AppContext) -> dict[str, Any]:
        return ctx.describe_session()
    _print(asyncio.run(_with_context(args, action)))


def cmd_folders(args: argparse.Namespace) -> None:
    """List content folders."""
    async def action(ctx: AppContext) -> dict[str, Any]:
        listing = await ctx.load_folders()
        return {
            "folders": [{"id": f.id, "title": f.title} for f in listing.folders],
            "suggested_folder_id": listing.suggested_id,
        }
    _print(asyncio.run(_with_context(args, action)))


def cmd_provision(args: argparse.Namespace) -> None:
    """Copy the template into your content."""
    async def action(ctx: AppContext) -> dict[str, Any]:
        ctx.fill(
            portfolio=args.portfolio, purpose=args.purpose, owner=args.owner,
            environment=args.env, fiscal_year=args.fy,
            tags=args.tags, summary=args.summary, description=args.description,
        )
        choice = choice_from_args(args.folder, args.new_folder)
        if choice is not None:
            ctx.choose_folder(choice)
        result = await ctx.submit()
        return result.to_dict()

    result = asyncio.run(_with_context(args, action))
    _print(result)
    if result.get("error"):
        sys.exit(1)


def cmd_signout(args: argparse.Namespace) -> None:
    """Sign out and forget the stored session."""
    async def action(ctx: AppContext) -> dict[str, Any]:
        await ctx.sign_out()
        return ctx.describe_session()
    _print(asyncio.run(_with_context(args, action)))


def _add_naming_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("portfolio", help="Portfolio/mission, e.g. SAD (UPPERCASE in title)")
    p.add_argument("purpose", help="Purpose, e.g. 'collab ops' (PascalCase in title)")
    p.add_argument("owner", help="Owner, e.g. GEO (UPPERCASE in title)")
    p.add_argument("--env", choices=["AGOL", "PORTAL"], default="AGOL", help="Environment (default: AGOL)")
    p.add_argument("--fy", help="Fiscal year FY## (default: current FY)")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="NCNG web map template saver",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    ncng title sad "collab ops" geo
    ncng folders
    ncng provision sad "collab ops" geo --folder root
    ncng provision iemac planning j3 --new-folder "NCNG-AGOL-Maps" --tags "NCNG, IEMAC"
""",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # title
    title_p = subparsers.add_parser("title", help="Preview a canonical title")
    _add_naming_args(title_p)
    title_p.set_defaults(func=cmd_title)

    # whoami
    whoami_p = subparsers.add_parser("whoami", help="Show the signed-in user")
    whoami_p.set_defaults(func=cmd_whoami)

    # folders
    folders_p = subparsers.add_parser("folders", help="List your content folders")
    folders_p.set_defaults(func=cmd_folders)

    # provision
    provision_p = subparsers.add_parser("provision", help="Save your copy of the template")
    _add_naming_args(provision_p)
    folder_group = provision_p.add_mutually_exclusive_group()
    folder_group.add_argument("--folder", help="Existing folder id, or 'root' (default: suggested folder)")
    folder_group.add_argument("--new-folder", help="Create this folder and save into it")
    provision_p.add_argument("--tags", help="Comma-separated tags")
    provision_p.add_argument("--summary", help="Short summary")
    provision_p.add_argument("--description", help="Description")
    provision_p.set_defaults(func=cmd_provision)

    # signout
    signout_p = subparsers.add_parser("signout", help="Sign out")
    signout_p.set_defaults(func=cmd_signout)

    args = parser.parse_args()
    configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
