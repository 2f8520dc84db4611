#!/usr/bin/env python3
"""
NCNG Template Saver MCP Server

Provision a personal, naming-convention-compliant copy of the NCNG web map
template into the signed-in user's ArcGIS content.

Tools:
- session: Sign in / out, show who is signed in
- title: Build and validate a canonical title (no sign-in needed)
- folders: List the user's folders and the suggested default
- provision: Copy the template (folder → copy → patch)

Architecture:
- naming.py, state.py: Pure functions (no I/O)
- adapters/: Thin ArcGIS REST / OAuth / storage wrappers
- tools/: Session, folder and provisioning logic
- server.py: Thin MCP wrappers (this file)
"""

import os
import signal
from functools import lru_cache
from typing import Any

from mcp.server.fastmcp import FastMCP

from logging_config import configure_logging
from models import PortalError, ResponseType
from naming import TITLE_GRAMMAR, preview_title
from portal_config import PortalConfig
from tools import AppContext, choice_from_args

# Initialize MCP server
mcp = FastMCP("NCNG Template Saver")


@lru_cache(maxsize=1)
def get_context() -> AppContext:
    """Build the app context once per process."""
    return AppContext(PortalConfig.from_env())


async def _started_context() -> AppContext:
    ctx = get_context()
    if not ctx.started:
        await ctx.start()
    return ctx


# ============================================================================
# TOOLS (thin wrappers)
# ============================================================================

@mcp.tool()
async def session(
    action: str = "status",
    callback_url: str | None = None,
    response_type: str = "token",
) -> dict[str, Any]:
    """
    Manage the ArcGIS sign-in session.

    Args:
        action: 'status' | 'sign_in' | 'complete' | 'sign_out'
        callback_url: Full redirect URL after signing in (required for 'complete')
        response_type: 'token' (implicit) or 'code' (PKCE) for 'sign_in'

    Returns:
        state: 'authenticated' | 'authenticating' | 'unauthenticated'
        username: Signed-in user (when authenticated)
        authorize_url: URL to open in a browser (for 'sign_in')
    """
    try:
        if action == "status":
            ctx = await _started_context()
            return ctx.describe_session()
        if action == "sign_in":
            try:
                mode = ResponseType(response_type)
            except ValueError:
                return {"error": True, "kind": "invalid_input",
                        "message": f"Unknown response_type: {response_type}. Supported: token, code"}
            ctx = get_context()
            url = ctx.begin_sign_in(mode, manual=True)
            return {**ctx.describe_session(), "authorize_url": url}
        if action == "complete":
            if not callback_url:
                return {"error": True, "kind": "invalid_input",
                        "message": "callback_url is required for action='complete'"}
            ctx = get_context()
            ctx.started = True
            await ctx.complete_sign_in(callback_url)
            return ctx.describe_session()
        if action == "sign_out":
            ctx = await _started_context()
            await ctx.sign_out()
            return ctx.describe_session()
    except PortalError as e:
        return e.to_dict()
    return {"error": True, "kind": "invalid_input",
            "message": f"Unknown action: {action}. Supported: status, sign_in, complete, sign_out"}


@mcp.tool()
def title(
    portfolio: str,
    purpose: str,
    owner: str,
    environment: str = "AGOL",
    fiscal_year: str | None = None,
) -> dict[str, Any]:
    """
    Build the canonical NCNG title from free-text fields.

    Args:
        portfolio: Portfolio/mission, e.g. 'SAD' (normalized to UPPERCASE)
        purpose: Purpose, e.g. 'collab ops' (normalized to PascalCase)
        owner: Owning section, e.g. 'GEO' (normalized to UPPERCASE)
        environment: 'AGOL' or 'PORTAL'
        fiscal_year: FY## (defaults to the current fiscal year; other values are dropped)

    Returns:
        title: Canonical title
        valid: Whether it matches the naming grammar
    """
    return preview_title(portfolio, purpose, owner, environment, fiscal_year)


@mcp.tool()
async def folders() -> dict[str, Any]:
    """
    List the signed-in user's content folders.

    Returns:
        folders: [{id, title}] in portal order
        suggested_folder_id: The conventional default folder, if it exists
    """
    try:
        ctx = await _started_context()
        listing = await ctx.load_folders()
    except PortalError as e:
        return e.to_dict()
    return {
        "folders": [{"id": f.id, "title": f.title} for f in listing.folders],
        "suggested_folder_id": listing.suggested_id,
    }


@mcp.tool()
async def provision(
    portfolio: str | None = None,
    purpose: str | None = None,
    owner: str | None = None,
    environment: str | None = None,
    fiscal_year: str | None = None,
    folder_id: str | None = None,
    new_folder: str | None = None,
    tags: str | None = None,
    summary: str | None = None,
    description: str | None = None,
    resume: bool = False,
) -> dict[str, Any]:
    """
    Copy the template into the signed-in user's content.

    Fields left as None keep their previous value from this session.

    Args:
        portfolio, purpose, owner, environment, fiscal_year: Naming fields (see title())
        folder_id: Existing folder id, or 'root'. Default: the suggested folder
        new_folder: Create a folder with this name and save into it
        tags: Comma-separated tags
        summary: Short summary (item snippet)
        description: Long description
        resume: Retry only the metadata update of a partially failed provision

    Returns:
        item_id, folder_id, title, web_link on success.
        On failure: error dict; kind 'partial' carries item_id (do NOT provision again,
        call with resume=True).
    """
    try:
        ctx = await _started_context()
        ctx.fill(
            portfolio=portfolio, purpose=purpose, owner=owner,
            environment=environment, fiscal_year=fiscal_year,
            tags=tags, summary=summary, description=description,
        )
        choice = choice_from_args(folder_id, new_folder)
        if choice is not None:
            ctx.choose_folder(choice)
        result = await (ctx.resume() if resume else ctx.submit())
    except PortalError as e:
        return e.to_dict()
    return result.to_dict()


# ============================================================================
# RESOURCES
# ============================================================================

@mcp.resource("ncng://docs/overview")
def docs_overview() -> str:
    """Overview of the template saver."""
    return f"""# NCNG Template Saver

Creates your own copy of the NCNG web map template. The original template
stays protected; this only creates a personal copy.

## Workflow

1. `session(action="sign_in")` → open `authorize_url`, sign in
2. `session(action="complete", callback_url=...)` with the address you land on
3. `title(...)` to preview the canonical title
4. `folders()` to pick a folder (or pass `new_folder`)
5. `provision(...)`

## Naming convention

`{TITLE_GRAMMAR}`

- Portfolio, Owner: UPPERCASE letters and digits
- Purpose: PascalCase, starts with a letter
- FY##: optional; the fiscal year starts October 1

## Failures

| kind | meaning | retry |
|------|---------|-------|
| `invalid_input` | bad title or folder name | fix input |
| `auth_required` | not signed in | sign in |
| `network_error`, `auth_expired`, ... | folder or copy step failed, nothing copied | provision again |
| `partial` | copy made (`item_id`), details update failed | `provision(resume=True)` |
| `in_progress` | another provision is running | wait |
"""


# ============================================================================
# SERVER ENTRY POINT
# ============================================================================

def _shutdown_handler(signum: int, frame: object) -> None:
    """Handle termination signals by exiting immediately.

    os._exit() is required because sys.exit() raises SystemExit,
    which asyncio's event loop catches and ignores.
    """
    os._exit(0)


if __name__ == "__main__":
    configure_logging(os.environ.get("NCNG_LOG_LEVEL", "INFO"))
    signal.signal(signal.SIGTERM, _shutdown_handler)
    signal.signal(signal.SIGINT, _shutdown_handler)
    mcp.run()
