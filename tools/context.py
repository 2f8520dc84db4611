"""
AppContext — wires the components and owns the live AppState.

Built once per process from a PortalConfig. Surfaces (server.py, cli.py,
auth.py) talk to this object only; they never hold their own copies of
session, field, or folder state.
"""

import webbrowser
from datetime import date
from typing import Any, Callable

import httpx

from adapters.http import build_client
from adapters.identity import ArcGISIdentityProvider
from adapters.navigation import Navigator
from adapters.portal import PortalClient
from adapters.storage import FileStore, MemoryStore
from logging_config import logger
from models import (
    Authenticated,
    Authenticating,
    AuthenticationError,
    FolderChoice,
    FolderListing,
    PartialProvisioningError,
    PortalError,
    ProvisionResult,
    ResponseType,
    SessionState,
    ValidationError,
)
from portal_config import PortalConfig
from state import (
    AppState,
    Event,
    FieldEdited,
    FolderChoiceChanged,
    FoldersLoaded,
    MetadataEdited,
    SessionCleared,
    SessionEstablished,
    SignInStarted,
    initial_state,
    reduce,
)
from tools.folders import FolderResolver, suggest
from tools.provision import Orchestrator
from tools.session import SessionManager


class AppContext:
    """Single owner of the application state."""

    def __init__(
        self,
        config: PortalConfig,
        *,
        client: httpx.AsyncClient | None = None,
        store: FileStore | MemoryStore | None = None,
        navigator: Navigator | None = None,
        opener: Callable[[str], bool] = webbrowser.open,
        today: date | None = None,
    ):
        self.config = config
        self.http = client or build_client()
        self.session_storage = MemoryStore()
        self.store = store if store is not None else FileStore(config.session_file)
        self.navigator = navigator or Navigator(config.redirect_uri)

        self.provider = ArcGISIdentityProvider(
            config.portal_url, config.client_id, config.redirect_uri,
            session_storage=self.session_storage, client=self.http, opener=opener,
        )
        self.portal = PortalClient(config.portal_url, client=self.http)
        self.sessions = SessionManager(
            config, self.provider, self.store, self.session_storage, self.navigator,
        )
        self.folders = FolderResolver(self.portal, on_listing=self._on_listing)
        self.orchestrator = Orchestrator(config, self.portal, self.folders, on_event=self.dispatch)
        self.today = today
        self.state: AppState = initial_state(today)
        self.started = False

    def dispatch(self, event: Event) -> AppState:
        self.state = reduce(self.state, event)
        return self.state

    def _on_listing(self, listing: FolderListing) -> None:
        self.dispatch(FoldersLoaded(listing.folders, suggest(listing, self.state.folders.choice)))

    @property
    def session(self) -> SessionState:
        return self.state.session

    def describe_session(self) -> dict[str, Any]:
        """Session summary for surfaces. Never includes the token."""
        session = self.state.session
        if isinstance(session, Authenticated):
            credential = session.credential
            return {
                "state": "authenticated",
                "username": session.subject,
                "portal": credential.portal,
                "expires": credential.expires.isoformat(),
                "refreshable": credential.refresh_token is not None,
            }
        if isinstance(session, Authenticating):
            return {"state": "authenticating", "response_type": session.response_type.value}
        return {"state": "unauthenticated"}

    def _require_session(self) -> Authenticated:
        session = self.state.session
        if not isinstance(session, Authenticated):
            raise AuthenticationError("Please sign in first.")
        return session

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def start(self) -> SessionState:
        """
        Complete a pending handshake or restore a stored session, then load folders.

        Raises:
            AuthenticationError: A handshake return was present but failed
        """
        self.started = True
        session = await self.sessions.start()
        if isinstance(session, Authenticated):
            await self._established(session)
        return self.state.session

    async def _established(self, session: Authenticated) -> None:
        self.dispatch(SessionEstablished(session))
        try:
            await self.folders.list_folders(session)
        except PortalError as e:
            # Folders can be reloaded later; the session itself is fine
            logger.warning(f"Could not load folders for {session.subject}: {e.message}")

    def begin_sign_in(self, response_type: ResponseType = ResponseType.TOKEN, manual: bool = False) -> str:
        url = self.sessions.begin_sign_in(response_type, manual=manual)
        self.dispatch(SignInStarted(response_type))
        return url

    async def complete_sign_in(self, callback_url: str) -> SessionState:
        session = await self.sessions.complete_sign_in(callback_url)
        if isinstance(session, Authenticated):
            await self._established(session)
        return self.state.session

    async def sign_out(self) -> None:
        await self.sessions.sign_out()
        self.dispatch(SessionCleared(self.today))

    # ------------------------------------------------------------------
    # Form
    # ------------------------------------------------------------------

    def edit(self, name: str, value: str) -> AppState:
        """
        Edit a naming field or a metadata field by name.

        Raises:
            ValidationError: Unknown field or bad environment value
        """
        try:
            if name in ("tags", "summary", "description"):
                return self.dispatch(MetadataEdited(name, value))
            return self.dispatch(FieldEdited(name, value))
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def fill(self, **values: str | None) -> AppState:
        """Apply several edits at once. None means leave the field as is."""
        for name, value in values.items():
            if value is not None:
                self.edit(name, value)
        return self.state

    def choose_folder(self, choice: FolderChoice) -> AppState:
        return self.dispatch(FolderChoiceChanged(choice))

    async def load_folders(self) -> FolderListing:
        return await self.folders.list_folders(self._require_session())

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    async def submit(self) -> ProvisionResult:
        """Provision from the current form state."""
        state = self.state
        return await self.orchestrator.submit(
            state.session,
            state.title,
            state.fields.title_valid,
            state.folders.choice,
            state.metadata,
        )

    async def resume(self) -> ProvisionResult:
        """
        Retry only the metadata patch of the last partially-failed submit.

        Raises:
            ValidationError: The last submit didn't end in a partial failure
        """
        error = self.state.transaction.error
        if not isinstance(error, PartialProvisioningError):
            raise ValidationError("Nothing to resume: the last submission did not partially fail.")
        return await self.orchestrator.resume(
            self.state.session, error, self.state.title, self.state.metadata,
        )

    async def aclose(self) -> None:
        await self.http.aclose()
