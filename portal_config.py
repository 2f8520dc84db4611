"""
Portal Configuration - Single Source of Truth

All portal and OAuth parameters defined here. Do not duplicate elsewhere.
Build a PortalConfig once at startup and pass it to every component.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path

# Package root (where this file lives)
_PACKAGE_ROOT = Path(__file__).parent

# ArcGIS Online sharing API (Enterprise portals use https://host/portal)
DEFAULT_PORTAL_URL = 'https://www.arcgis.com/sharing/rest'

# OAuth redirect target (localhost callback; register it on the app item)
DEFAULT_REDIRECT_URI = 'http://localhost:3000/'

# Persistent session key. Bump the suffix if the blob shape changes.
STORAGE_KEY = 'ncng_arcgis_session_v1'

# Local session storage (user's portal tokens, not shared)
# Absolute path so it works regardless of cwd when MCP runs
SESSION_FILE = _PACKAGE_ROOT / 'session.json'

# Environment variable names
ENV_PORTAL_URL = 'NCNG_PORTAL_URL'
ENV_CLIENT_ID = 'NCNG_CLIENT_ID'
ENV_REDIRECT_URI = 'NCNG_REDIRECT_URI'
ENV_TEMPLATE_OWNER = 'NCNG_TEMPLATE_OWNER'
ENV_TEMPLATE_ITEMID = 'NCNG_TEMPLATE_ITEMID'
ENV_SESSION_FILE = 'NCNG_SESSION_FILE'

_SHARING_REST_SUFFIX = re.compile(r'/sharing/rest$')


def with_sharing_rest(url: str | None) -> str:
    """
    Normalize a portal address to its sharing API root.

    Examples:
        "https://www.arcgis.com" -> "https://www.arcgis.com/sharing/rest"
        "https://gis.example.mil/portal/" -> "https://gis.example.mil/portal/sharing/rest"
        "" -> DEFAULT_PORTAL_URL
    """
    if not url:
        return DEFAULT_PORTAL_URL
    trimmed = url.rstrip('/')
    return trimmed if _SHARING_REST_SUFFIX.search(trimmed) else f'{trimmed}/sharing/rest'


@dataclass(frozen=True)
class PortalConfig:
    """
    Injected constants for the session manager, folder resolver and orchestrator.

    portal_url is always the normalized sharing API root.
    """
    client_id: str
    template_owner: str
    template_item_id: str
    portal_url: str = DEFAULT_PORTAL_URL
    redirect_uri: str = DEFAULT_REDIRECT_URI
    storage_key: str = STORAGE_KEY
    session_file: Path = SESSION_FILE

    def __post_init__(self) -> None:
        object.__setattr__(self, 'portal_url', with_sharing_rest(self.portal_url))

    @property
    def portal_home(self) -> str:
        """Portal web root, e.g. https://www.arcgis.com"""
        return _SHARING_REST_SUFFIX.sub('', self.portal_url)

    def item_page_url(self, item_id: str) -> str:
        return f'{self.portal_home}/home/item.html?id={item_id}'

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> 'PortalConfig':
        """Build config from NCNG_* environment variables."""
        env = os.environ if environ is None else environ
        session_file = env.get(ENV_SESSION_FILE)
        return cls(
            client_id=env.get(ENV_CLIENT_ID, ''),
            template_owner=env.get(ENV_TEMPLATE_OWNER, ''),
            template_item_id=env.get(ENV_TEMPLATE_ITEMID, ''),
            portal_url=with_sharing_rest(env.get(ENV_PORTAL_URL)),
            redirect_uri=env.get(ENV_REDIRECT_URI) or DEFAULT_REDIRECT_URI,
            session_file=Path(session_file) if session_file else SESSION_FILE,
        )
