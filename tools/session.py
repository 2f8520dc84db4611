"""
Session manager — owns the identity-session state machine.

    Unauthenticated → Authenticating → Authenticated → Unauthenticated

On start the manager looks at the navigation context for a completed
handshake (code query param or access_token fragment). If found, it
completes the handshake, persists the session, and strips the artifacts
from the address. Otherwise it tries to restore a persisted session;
restore failures are quiet.
"""

from adapters.identity import ArcGISIdentityProvider
from adapters.navigation import Navigator
from adapters.storage import FileStore, MemoryStore
from logging_config import logger
from models import (
    Authenticated,
    Authenticating,
    AuthenticationError,
    Credential,
    ResponseType,
    RestoreErr,
    RestoreOk,
    RestoreResult,
    SessionState,
    Unauthenticated,
)
from portal_config import PortalConfig


class SessionManager:
    """Single owner of the identity session."""

    def __init__(
        self,
        config: PortalConfig,
        provider: ArcGISIdentityProvider,
        store: FileStore | MemoryStore,
        session_storage: MemoryStore,
        navigator: Navigator,
    ):
        self.config = config
        self.provider = provider
        self.store = store
        self.session_storage = session_storage
        self.navigator = navigator
        self.state: SessionState = Unauthenticated()

    @property
    def session(self) -> Authenticated | None:
        return self.state if isinstance(self.state, Authenticated) else None

    async def start(self) -> SessionState:
        """
        Establish the session for this process.

        Raises:
            AuthenticationError: A handshake return was present but couldn't be completed
        """
        response_type = self.navigator.handshake_response_type()
        if response_type is not None:
            await self._complete_handshake(response_type)
            return self.state

        result = self.restore()
        if isinstance(result, RestoreErr):
            logger.debug(f"No session restored: {result.reason}")
            return self.state

        credential = result.credential
        if credential.is_expired():
            try:
                credential = await self.provider.refresh(credential)
            except AuthenticationError as e:
                logger.debug(f"No session restored: {e.message}")
                return self.state
            self.persist(credential)

        self.state = Authenticated(credential.username, credential)
        logger.info(f"Restored session for {credential.username}")
        return self.state

    async def _complete_handshake(self, response_type: ResponseType) -> None:
        callback_url = self.navigator.href
        try:
            credential = await self.provider.complete_handshake(callback_url, response_type)
        except AuthenticationError:
            self.state = Unauthenticated()
            raise
        finally:
            # Artifacts are single-use; never reprocess them
            self.navigator.replace(self.config.redirect_uri)

        self.state = Authenticated(credential.username, credential)
        self.persist(credential)
        logger.info(f"Signed in as {credential.username} ({response_type.value} mode)")

    def restore(self) -> RestoreResult:
        """Read back a persisted session. Never raises."""
        try:
            blob = self.store.get(self.config.storage_key)
        except (OSError, ValueError) as e:
            return RestoreErr(f"unreadable store: {e}")
        if not blob:
            return RestoreErr("missing")

        try:
            credential = self.provider.deserialize(blob)
            expired = credential.is_expired() and not credential.can_refresh()
        except (ValueError, TypeError) as e:
            return RestoreErr(f"invalid blob: {e}")

        if expired:
            return RestoreErr(f"expired at {credential.expires.isoformat()}")
        return RestoreOk(credential)

    def persist(self, credential: Credential) -> bool:
        """
        Write the session to the persistent store.

        Failure is logged and swallowed: the session still works for this
        process, it just won't survive a restart.
        """
        try:
            self.store.set(self.config.storage_key, self.provider.serialize(credential))
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Could not persist session for {credential.username}: {e}")
            return False
        return True

    def begin_sign_in(self, response_type: ResponseType = ResponseType.TOKEN, manual: bool = False) -> str:
        """
        Start the redirect handshake. Returns the authorize URL.

        Raises:
            AuthenticationError: If the handshake couldn't start (state unchanged)
        """
        url = self.provider.begin_handshake(response_type, manual=manual)
        self.state = Authenticating(response_type)
        return url

    async def complete_sign_in(self, callback_url: str) -> SessionState:
        """Feed the address the provider redirected to back through start()."""
        self.navigator.assign(callback_url)
        if self.navigator.handshake_response_type() is None:
            self.navigator.replace(self.config.redirect_uri)
            raise AuthenticationError(
                "That address has no sign-in response in it. Paste the full redirect URL.",
            )
        return await self.start()

    async def sign_out(self) -> None:
        """
        End the session. Always succeeds.

        Provider notification is best effort; local state is cleared regardless.
        """
        session = self.session
        if session is not None:
            try:
                await self.provider.sign_out(session.credential)
            except Exception as e:
                logger.warning(f"Token revocation failed (ignored): {e}")

        try:
            self.store.remove(self.config.storage_key)
        except OSError as e:
            logger.warning(f"Could not remove stored session: {e}")
        self.session_storage.clear()
        self.state = Unauthenticated()
        self.navigator.assign(self.config.redirect_uri)
        logger.info("Signed out")
