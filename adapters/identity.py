"""
Identity adapter — ArcGIS OAuth 2.0 for a named-user session.

The provider is used through these operations:
- begin_handshake: build the authorize URL and open it in a browser
- complete_handshake: turn the callback address into a Credential
- refresh: trade a refresh token for a new access token (code mode only)
- serialize / deserialize: round-trip a Credential through a JSON blob
- sign_out: revoke the token (best effort, callers ignore failures)

Two response modes:
- token: implicit grant; the access token comes back in the URL fragment
- code: authorization code with PKCE, exchanged at oauth2/token

The PKCE verifier and state nonce live in session-scoped storage between
begin and complete, so both must happen in the same process.
"""

import base64
import hashlib
import json
import secrets
import webbrowser
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from adapters.http import build_client, check_response
from adapters.storage import MemoryStore
from logging_config import log_api_call, log_api_result, logger
from models import AuthenticationError, Credential, ErrorKind, ResponseType
from retry import convert_to_portal_error

__all__ = ["ArcGISIdentityProvider", "SESSION_BLOB_VERSION"]

# Bump when the serialized shape changes; older blobs fail to restore
SESSION_BLOB_VERSION = 1

# Requested token lifetime in minutes (two weeks, the portal maximum for apps)
TOKEN_EXPIRATION_MINUTES = 20160


def _pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _parse_params(url: str, response_type: ResponseType) -> dict[str, str]:
    parts = urlsplit(url)
    raw = parts.query if response_type is ResponseType.CODE else parts.fragment
    return {k: v[0] for k, v in parse_qs(raw).items()}


def _expiry(seconds: str | int | None, now: datetime) -> datetime:
    try:
        return now + timedelta(seconds=int(seconds or 0))
    except (TypeError, ValueError):
        return now


def _parse_timestamp(value: str) -> datetime:
    """Stored timestamps must carry an offset; naive ones can't be compared to now."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp has no UTC offset: {value!r}")
    return parsed


class ArcGISIdentityProvider:
    """OAuth 2.0 authority for one portal and one registered app."""

    def __init__(
        self,
        portal_url: str,
        client_id: str,
        redirect_uri: str,
        session_storage: MemoryStore | None = None,
        client: httpx.AsyncClient | None = None,
        opener: Callable[[str], bool] = webbrowser.open,
    ):
        self.portal_url = portal_url.rstrip("/")
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.session_storage = session_storage or MemoryStore()
        self._client = client or build_client()
        self._opener = opener

    @property
    def _state_key(self) -> str:
        return f"{self.client_id}-oauth-state"

    @property
    def _verifier_key(self) -> str:
        return f"{self.client_id}-pkce-verifier"

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    def authorize_url(self, response_type: ResponseType, state: str, code_challenge: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": response_type.value,
            "redirect_uri": self.redirect_uri,
            "state": state,
            "expiration": TOKEN_EXPIRATION_MINUTES,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        return f"{self.portal_url}/oauth2/authorize?{urlencode(params)}"

    def begin_handshake(self, response_type: ResponseType = ResponseType.TOKEN, manual: bool = False) -> str:
        """
        Start the redirect handshake.

        Args:
            response_type: token (implicit) or code (PKCE)
            manual: Don't open a browser; the caller shows the URL instead

        Returns:
            The authorize URL

        Raises:
            AuthenticationError: If the handshake can't be started
        """
        if not self.client_id:
            raise AuthenticationError(
                "No client id configured. Set NCNG_CLIENT_ID to the portal app's client id.",
                kind=ErrorKind.AUTH_FAILED,
            )

        state = secrets.token_urlsafe(16)
        challenge = None
        self.session_storage.set(self._state_key, state)
        if response_type is ResponseType.CODE:
            verifier = secrets.token_urlsafe(64)
            self.session_storage.set(self._verifier_key, verifier)
            challenge = _pkce_challenge(verifier)

        url = self.authorize_url(response_type, state, challenge)
        log_api_call("identity", "begin_handshake", response_type=response_type.value, manual=manual)

        if not manual:
            try:
                opened = self._opener(url)
            except Exception as e:
                raise AuthenticationError(
                    f"Could not open browser for sign-in: {e}", kind=ErrorKind.AUTH_FAILED
                ) from e
            if not opened:
                raise AuthenticationError(
                    "Could not open browser for sign-in. Retry in manual mode.",
                    kind=ErrorKind.AUTH_FAILED,
                    details={"authorize_url": url},
                )
        return url

    async def complete_handshake(self, callback_url: str, response_type: ResponseType) -> Credential:
        """
        Finish the handshake from the address the provider redirected to.

        Raises:
            AuthenticationError: Provider error, state mismatch, or failed exchange
        """
        params = _parse_params(callback_url, response_type)
        expected_state = self.session_storage.get(self._state_key)
        verifier = self.session_storage.get(self._verifier_key)
        self.session_storage.remove(self._state_key)
        self.session_storage.remove(self._verifier_key)

        if "error" in params:
            raise AuthenticationError(
                params.get("error_description") or params["error"],
                kind=ErrorKind.AUTH_FAILED,
                details={"provider_error": params["error"]},
            )

        # No stored state means begin ran in another process (auth.py --code);
        # only a mismatch against a state we issued is rejected.
        if expected_state and params.get("state") != expected_state:
            raise AuthenticationError(
                "Sign-in response state does not match the request. Start sign-in again.",
                kind=ErrorKind.AUTH_FAILED,
            )

        now = datetime.now(timezone.utc)
        if response_type is ResponseType.TOKEN:
            return self._credential_from_fragment(params, now)
        return await self._exchange_code(params, verifier, now)

    def _credential_from_fragment(self, params: dict[str, str], now: datetime) -> Credential:
        if not params.get("access_token") or not params.get("username"):
            raise AuthenticationError(
                "Sign-in response is missing the access token or username.",
                kind=ErrorKind.AUTH_FAILED,
            )
        log_api_result("identity", "complete_handshake")
        return Credential(
            username=params["username"],
            token=params["access_token"],
            expires=_expiry(params.get("expires_in"), now),
            portal=self.portal_url,
            client_id=self.client_id,
            ssl=params.get("ssl", "true") == "true",
        )

    async def _exchange_code(self, params: dict[str, str], verifier: str | None, now: datetime) -> Credential:
        code = params.get("code")
        if not code:
            raise AuthenticationError("Sign-in response has no authorization code.", kind=ErrorKind.AUTH_FAILED)
        if not verifier:
            raise AuthenticationError(
                "No pending code sign-in in this process. Start sign-in again.",
                kind=ErrorKind.AUTH_FAILED,
            )

        log_api_call("identity", "exchange_code", client_id=self.client_id)
        try:
            response = await self._client.post(
                f"{self.portal_url}/oauth2/token",
                data={
                    "grant_type": "authorization_code",
                    "client_id": self.client_id,
                    "redirect_uri": self.redirect_uri,
                    "code": code,
                    "code_verifier": verifier,
                    "f": "json",
                },
            )
            payload = check_response(response)
        except Exception as e:
            cause = convert_to_portal_error(e)
            raise AuthenticationError(
                f"Token exchange failed: {cause.message}",
                kind=ErrorKind.AUTH_FAILED,
                details={"cause": cause.kind.value},
            ) from e

        if not payload.get("access_token") or not payload.get("username"):
            raise AuthenticationError(
                "Token exchange returned no access token or username.",
                kind=ErrorKind.AUTH_FAILED,
            )
        log_api_result("identity", "exchange_code")
        refresh_token = payload.get("refresh_token")
        return Credential(
            username=payload["username"],
            token=payload["access_token"],
            expires=_expiry(payload.get("expires_in"), now),
            portal=self.portal_url,
            client_id=self.client_id,
            refresh_token=refresh_token,
            refresh_token_expires=(
                _expiry(payload.get("refresh_token_expires_in"), now)
                if refresh_token and payload.get("refresh_token_expires_in") else None
            ),
            ssl=bool(payload.get("ssl", True)),
        )

    async def refresh(self, credential: Credential) -> Credential:
        """
        Trade the refresh token for a new access token.

        Raises:
            AuthenticationError: No refresh token, or the portal refused it
        """
        if not credential.refresh_token:
            raise AuthenticationError("Session has no refresh token.", kind=ErrorKind.AUTH_EXPIRED)

        log_api_call("identity", "refresh_token", client_id=credential.client_id)
        try:
            response = await self._client.post(
                f"{credential.portal}/oauth2/token",
                data={
                    "grant_type": "refresh_token",
                    "client_id": credential.client_id,
                    "refresh_token": credential.refresh_token,
                    "f": "json",
                },
            )
            payload = check_response(response)
        except Exception as e:
            cause = convert_to_portal_error(e)
            raise AuthenticationError(
                f"Token refresh failed: {cause.message}",
                kind=ErrorKind.AUTH_EXPIRED,
                details={"cause": cause.kind.value},
            ) from e

        if not payload.get("access_token"):
            raise AuthenticationError("Token refresh returned no access token.", kind=ErrorKind.AUTH_EXPIRED)
        log_api_result("identity", "refresh_token")
        return replace(
            credential,
            token=payload["access_token"],
            expires=_expiry(payload.get("expires_in"), datetime.now(timezone.utc)),
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def serialize(credential: Credential) -> str:
        data: dict[str, Any] = {
            "version": SESSION_BLOB_VERSION,
            "username": credential.username,
            "token": credential.token,
            "expires": credential.expires.isoformat(),
            "portal": credential.portal,
            "client_id": credential.client_id,
            "refresh_token": credential.refresh_token,
            "refresh_token_expires": (
                credential.refresh_token_expires.isoformat()
                if credential.refresh_token_expires else None
            ),
            "ssl": credential.ssl,
        }
        return json.dumps(data)

    @staticmethod
    def deserialize(blob: str) -> Credential:
        """
        Rebuild a Credential from serialize() output.

        Raises:
            ValueError: Unparseable blob, wrong version, or missing fields
        """
        data = json.loads(blob)
        if not isinstance(data, dict):
            raise ValueError("Session blob is not a JSON object")
        if data.get("version") != SESSION_BLOB_VERSION:
            raise ValueError(f"Unsupported session blob version: {data.get('version')!r}")
        try:
            refresh_expires = data.get("refresh_token_expires")
            return Credential(
                username=data["username"],
                token=data["token"],
                expires=_parse_timestamp(data["expires"]),
                portal=data["portal"],
                client_id=data["client_id"],
                refresh_token=data.get("refresh_token"),
                refresh_token_expires=_parse_timestamp(refresh_expires) if refresh_expires else None,
                ssl=bool(data.get("ssl", True)),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Session blob is missing fields: {e}") from e

    # ------------------------------------------------------------------
    # Sign out
    # ------------------------------------------------------------------

    async def sign_out(self, credential: Credential) -> None:
        """
        Revoke the session's token at the portal.

        Raises:
            PortalError: If revocation fails (callers treat this as best effort)
        """
        token, hint = (
            (credential.refresh_token, "refresh_token")
            if credential.refresh_token else (credential.token, "access_token")
        )
        log_api_call("identity", "revoke_token", client_id=credential.client_id, hint=hint)
        try:
            response = await self._client.post(
                f"{credential.portal}/oauth2/revokeToken",
                data={
                    "client_id": credential.client_id,
                    "auth_token": token,
                    "token_type_hint": hint,
                    "f": "json",
                },
            )
            check_response(response)
        except Exception as e:
            raise convert_to_portal_error(e) from e
        logger.info(f"Revoked portal token for {credential.username}")
