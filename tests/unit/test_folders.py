"""Tests for the folder resolver."""

import pytest

from adapters.portal import PortalClient
from models import (
    Authenticated,
    CreateFolder,
    ErrorKind,
    Folder,
    FolderListing,
    FolderTarget,
    PortalError,
    UseExistingFolder,
    ValidationError,
)
from tests.helpers import FakePortal, form
from tests.mock_utils import make_arcgis_error
from tools.folders import FolderResolver, choice_from_args, suggest

USER_URL = "/sharing/rest/content/users/alice"

LISTING = {
    "folders": [
        {"id": "f1", "title": "Projects"},
        {"id": "f2", "title": "NCNG-AGOL-Maps"},
    ],
}


class TestSuggest:

    def test_unset_choice_takes_suggestion(self) -> None:
        listing = FolderListing((Folder("f2", "NCNG-AGOL-Maps"),), suggested_id="f2")
        assert suggest(listing, UseExistingFolder()) == UseExistingFolder("f2")

    def test_explicit_choice_wins(self) -> None:
        listing = FolderListing((), suggested_id="f2")
        explicit_root = UseExistingFolder(None, explicit=True)
        assert suggest(listing, explicit_root) is explicit_root
        picked = UseExistingFolder("f1", explicit=True)
        assert suggest(listing, picked) is picked

    def test_pending_create_wins(self) -> None:
        choice = CreateFolder("Other")
        assert suggest(FolderListing((), suggested_id="f2"), choice) is choice

    def test_no_suggestion_keeps_choice(self) -> None:
        choice = UseExistingFolder()
        assert suggest(FolderListing(()), choice) is choice


class TestChoiceFromArgs:

    @pytest.mark.parametrize("folder_id,new_folder,expected", [
        (None, None, None),
        ("root", None, UseExistingFolder(None, explicit=True)),
        ("", None, UseExistingFolder(None, explicit=True)),
        (" f1 ", None, UseExistingFolder("f1", explicit=True)),
        (None, "Maps", CreateFolder("Maps")),
        ("f1", "Maps", CreateFolder("Maps")),
    ])
    def test_mapping(self, folder_id, new_folder, expected) -> None:
        assert choice_from_args(folder_id, new_folder) == expected


class TestListFolders:

    @pytest.mark.asyncio
    async def test_suggests_conventional_folder(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        fake_portal.on("GET", USER_URL, LISTING)
        seen = []
        resolver = FolderResolver(portal_client, on_listing=seen.append)

        listing = await resolver.list_folders(session)

        assert [f.id for f in listing.folders] == ["f1", "f2"]
        assert listing.suggested_id == "f2"
        assert resolver.listing == listing
        assert seen == [listing]

    @pytest.mark.asyncio
    async def test_no_conventional_folder(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        fake_portal.on("GET", USER_URL, {"folders": [{"id": "f1", "title": "ncng-agol-maps"}]})

        listing = await FolderResolver(portal_client).list_folders(session)

        # Match is exact, case included
        assert listing.suggested_id is None


class TestCreateFolder:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("title", ["", "   "])
    async def test_blank_title_rejected_before_network(
        self, title: str, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        with pytest.raises(ValidationError):
            await FolderResolver(portal_client).create_folder(session, title)
        assert fake_portal.requests == []

    @pytest.mark.asyncio
    async def test_trims_title(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        fake_portal.on("POST", "/createFolder", {"success": True, "folder": {"id": "nf"}})

        folder_id = await FolderResolver(portal_client).create_folder(session, "  Maps  ")

        assert folder_id == "nf"
        assert form(fake_portal.requests[0])["title"] == "Maps"


class TestResolveTarget:

    @pytest.mark.asyncio
    async def test_existing_folder_needs_no_network(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        resolver = FolderResolver(portal_client)

        assert await resolver.resolve_target(session, UseExistingFolder("f1")) == FolderTarget("f1")
        assert await resolver.resolve_target(session, UseExistingFolder(None, explicit=True)) == FolderTarget(None)
        assert await resolver.resolve_target(session, UseExistingFolder("")) == FolderTarget(None)
        assert fake_portal.requests == []

    @pytest.mark.asyncio
    async def test_create_then_refresh(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        fake_portal.on("POST", "/createFolder", {"success": True, "folder": {"id": "nf"}})
        fake_portal.on("GET", USER_URL, {"folders": [{"id": "nf", "title": "New"}]})
        resolver = FolderResolver(portal_client)

        target = await resolver.resolve_target(session, CreateFolder("New"))

        assert target == FolderTarget("nf", created=True)
        assert [f.id for f in resolver.listing.folders] == ["nf"]

    @pytest.mark.asyncio
    async def test_refresh_failure_is_not_fatal(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated, no_retry_delay: None,
    ) -> None:
        fake_portal.on("POST", "/createFolder", {"success": True, "folder": {"id": "nf"}})
        fake_portal.on("GET", USER_URL, make_arcgis_error(500, "down"))

        target = await FolderResolver(portal_client).resolve_target(session, CreateFolder("New"))

        assert target == FolderTarget("nf", created=True)

    @pytest.mark.asyncio
    async def test_create_failure_propagates(
        self, fake_portal: FakePortal, portal_client: PortalClient, session: Authenticated,
    ) -> None:
        fake_portal.on("POST", "/createFolder", make_arcgis_error(400, "Folder already exists"))

        with pytest.raises(PortalError) as exc_info:
            await FolderResolver(portal_client).resolve_target(session, CreateFolder("Dup"))

        assert exc_info.value.kind == ErrorKind.INVALID_INPUT
