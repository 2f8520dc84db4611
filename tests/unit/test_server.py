"""Tests for the MCP tool wrappers: dict in, dict out, errors as dicts."""

from datetime import date
from unittest.mock import AsyncMock, Mock, patch

import pytest

import server
from adapters.identity import ArcGISIdentityProvider
from adapters.navigation import Navigator
from adapters.storage import MemoryStore
from portal_config import PortalConfig
from tests.helpers import FakePortal, make_credential
from tests.mock_utils import make_arcgis_error
from tools import AppContext

USER_URL = "/sharing/rest/content/users/alice"


@pytest.fixture
def ctx(config: PortalConfig, fake_portal: FakePortal) -> AppContext:
    store = MemoryStore()
    store.set(config.storage_key, ArcGISIdentityProvider.serialize(make_credential("alice")))
    context = AppContext(
        config, client=fake_portal.client(), store=store,
        navigator=Navigator(config.redirect_uri), opener=Mock(return_value=True), today=date(2025, 11, 3),
    )
    with patch("server.get_context", return_value=context):
        yield context


class TestTitle:

    def test_valid(self) -> None:
        result = server.title("sad", "collab ops", "geo", fiscal_year="FY25")
        assert result["title"] == "NCNG-SAD-AGOL-CollabOps-GEO-FY25"
        assert result["valid"] is True

    def test_invalid(self) -> None:
        result = server.title("", "", "")
        assert result["valid"] is False
        assert "grammar" in result


class TestSession:

    @pytest.mark.asyncio
    async def test_unknown_action(self, ctx: AppContext) -> None:
        result = await server.session(action="explode")
        assert result["error"] is True
        assert result["kind"] == "invalid_input"
        assert "explode" in result["message"]

    @pytest.mark.asyncio
    async def test_status(self, ctx: AppContext, fake_portal: FakePortal) -> None:
        fake_portal.on("GET", USER_URL, {"folders": []})
        result = await server.session()
        assert result["state"] == "authenticated"
        assert result["username"] == "alice"

    @pytest.mark.asyncio
    async def test_sign_in_returns_url(self, ctx: AppContext) -> None:
        result = await server.session(action="sign_in", response_type="code")
        assert result["state"] == "authenticating"
        assert "/oauth2/authorize?" in result["authorize_url"]

    @pytest.mark.asyncio
    async def test_bad_response_type(self, ctx: AppContext) -> None:
        result = await server.session(action="sign_in", response_type="saml")
        assert result["kind"] == "invalid_input"
        assert "saml" in result["message"]

    @pytest.mark.asyncio
    async def test_other_value_errors_are_not_response_type_errors(self, ctx: AppContext) -> None:
        with patch.object(ctx, "complete_sign_in", AsyncMock(side_effect=ValueError("bad fragment"))):
            with pytest.raises(ValueError, match="bad fragment"):
                await server.session(action="complete", callback_url="http://localhost:3000/#x")

    @pytest.mark.asyncio
    async def test_complete_needs_callback(self, ctx: AppContext) -> None:
        result = await server.session(action="complete")
        assert result["kind"] == "invalid_input"

    @pytest.mark.asyncio
    async def test_complete_with_provider_error(self, ctx: AppContext) -> None:
        result = await server.session(action="complete", callback_url="http://localhost:3000/#error=access_denied")
        assert result["error"] is True
        assert result["kind"] == "auth_failed"


class TestFolders:

    @pytest.mark.asyncio
    async def test_lists(self, ctx: AppContext, fake_portal: FakePortal) -> None:
        fake_portal.on("GET", USER_URL, {"folders": [{"id": "f2", "title": "NCNG-AGOL-Maps"}]})
        result = await server.folders()
        assert result == {"folders": [{"id": "f2", "title": "NCNG-AGOL-Maps"}], "suggested_folder_id": "f2"}


class TestProvision:

    @pytest.mark.asyncio
    async def test_invalid_title(self, ctx: AppContext, fake_portal: FakePortal) -> None:
        fake_portal.on("GET", USER_URL, {"folders": []})
        result = await server.provision(portfolio="sad", purpose="!", owner="geo")
        assert result["kind"] == "invalid_input"
        assert fake_portal.calls("/copy") == []

    @pytest.mark.asyncio
    async def test_success(self, ctx: AppContext, fake_portal: FakePortal) -> None:
        fake_portal.on("GET", USER_URL, {"folders": []})
        fake_portal.on("POST", "/copy", {"itemId": "new1"})

        result = await server.provision(portfolio="sad", purpose="ops", owner="geo", folder_id="root")

        assert result["operation"] == "provision"
        assert result["item_id"] == "new1"
        assert result["folder_id"] is None

    @pytest.mark.asyncio
    async def test_partial_then_resume(self, ctx: AppContext, fake_portal: FakePortal) -> None:
        fake_portal.on("GET", USER_URL, {"folders": []})
        fake_portal.on("POST", "/copy", {"itemId": "new1"})
        fake_portal.on("POST", "/update", make_arcgis_error(500, "blip"), {"success": True})

        partial = await server.provision(portfolio="sad", purpose="ops", owner="geo", summary="s")
        assert partial["kind"] == "partial"
        assert partial["item_id"] == "new1"

        resumed = await server.provision(resume=True)
        assert resumed["item_id"] == "new1"
        assert resumed["cues"] == {"resumed": True}
        assert len(fake_portal.calls("/copy")) == 1
