"""
Shared pytest fixtures for NCNG template saver tests.

Nothing here talks to a real portal: HTTP goes through FakePortal
(httpx.MockTransport) and sessions live in a temp directory.
"""

from pathlib import Path

import pytest

from adapters.portal import PortalClient
from models import Authenticated
from portal_config import PortalConfig
from tests.helpers import PORTAL, FakePortal, make_session

TEMPLATE_OWNER = "ncng_admin"
TEMPLATE_ITEM_ID = "tpl0001"


@pytest.fixture
def config(tmp_path: Path) -> PortalConfig:
    """Config pointing at ArcGIS Online with a throwaway session file."""
    return PortalConfig(
        client_id="app-id",
        template_owner=TEMPLATE_OWNER,
        template_item_id=TEMPLATE_ITEM_ID,
        portal_url=PORTAL,
        redirect_uri="http://localhost:3000/",
        session_file=tmp_path / "session.json",
    )


@pytest.fixture
def fake_portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def portal_client(fake_portal: FakePortal) -> PortalClient:
    return PortalClient(PORTAL, client=fake_portal.client())


@pytest.fixture
def session() -> Authenticated:
    """Authenticated session for 'alice' with two hours left."""
    return make_session("alice")


@pytest.fixture
def no_retry_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make retry backoff instant."""
    async def instant(_seconds: float) -> None:
        return None
    monkeypatch.setattr("retry.asyncio.sleep", instant)
