"""
Folder resolver — lists, suggests, creates, and resolves the target folder.

Resolution always ends in exactly one target: an existing folder id, a
freshly created folder id, or root (folder_id None).
"""

from typing import Callable

from adapters.portal import PortalClient
from logging_config import logger
from models import (
    Authenticated,
    CreateFolder,
    FolderChoice,
    FolderListing,
    FolderTarget,
    PortalError,
    UseExistingFolder,
    ValidationError,
)
from naming import DEFAULT_FOLDER_TITLE


def suggest(listing: FolderListing, choice: FolderChoice) -> FolderChoice:
    """
    The choice to apply after a listing: the suggested folder, unless the user already chose.

    Only a non-explicit existing-folder choice is replaced; an explicit pick
    (including an explicit root) and a pending create are left alone.
    """
    if listing.suggested_id is not None and isinstance(choice, UseExistingFolder) and not choice.explicit:
        return UseExistingFolder(listing.suggested_id)
    return choice


ROOT = "root"


def choice_from_args(folder_id: str | None = None, new_folder: str | None = None) -> FolderChoice | None:
    """
    Map surface arguments to a folder choice.

    folder_id "root" (or "") picks root explicitly. None for both means
    "no opinion": keep the current, possibly suggested, choice.
    """
    if new_folder is not None:
        return CreateFolder(new_folder)
    if folder_id is None:
        return None
    if folder_id.strip().lower() in ("", ROOT):
        return UseExistingFolder(None, explicit=True)
    return UseExistingFolder(folder_id.strip(), explicit=True)


class FolderResolver:
    """Folder operations scoped to the signed-in user."""

    def __init__(
        self,
        portal: PortalClient,
        default_title: str = DEFAULT_FOLDER_TITLE,
        on_listing: Callable[[FolderListing], None] | None = None,
    ):
        self.portal = portal
        self.default_title = default_title
        self.on_listing = on_listing
        self.listing = FolderListing(folders=())

    async def list_folders(self, session: Authenticated) -> FolderListing:
        """
        Fetch the user's folders and note the conventional default, if present.

        Raises:
            PortalError: If the portal call fails
        """
        folders = tuple(await self.portal.list_folders(session.credential))
        preferred = next((f for f in folders if f.title == self.default_title), None)
        self.listing = FolderListing(folders, preferred.id if preferred else None)
        if self.on_listing is not None:
            self.on_listing(self.listing)
        return self.listing

    async def create_folder(self, session: Authenticated, title: str) -> str:
        """
        Create a folder and return its id.

        Raises:
            ValidationError: Title is blank (no network call made)
            PortalError: If the portal call fails
        """
        trimmed = (title or "").strip()
        if not trimmed:
            raise ValidationError("Please enter a folder name.")
        folder_id = await self.portal.create_folder(session.credential, trimmed)
        logger.info(f"Created folder '{trimmed}' ({folder_id})")
        return folder_id

    async def resolve_target(self, session: Authenticated, choice: FolderChoice) -> FolderTarget:
        """
        Turn a folder choice into a concrete target.

        Existing selections need no network call. Creation is followed by a
        listing refresh so the new folder shows up in later selections; a
        failed refresh is logged, since the new id is already known.
        """
        if isinstance(choice, UseExistingFolder):
            return FolderTarget(choice.folder_id or None)

        folder_id = await self.create_folder(session, choice.title)
        try:
            await self.list_folders(session)
        except PortalError as e:
            logger.warning(f"Folder list refresh after create failed: {e.message}")
        return FolderTarget(folder_id, created=True)
