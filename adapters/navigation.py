"""
Navigation context — the "current address" the app was opened with.

In a browser this is window.location. Here it is whatever address the
process was handed: the OAuth callback URL pasted into auth.py, or the
redirect target when nothing was handed in. The session manager reads it
to detect a completed handshake and rewrites it once the artifacts have
been consumed.
"""

from urllib.parse import parse_qs, urlsplit

from models import ResponseType

# Fragment key that marks an implicit-grant return
TOKEN_FRAGMENT_KEY = "access_token"


class Navigator:
    """
    Mutable current address with browser-like replace/assign.

    history records every address change, newest last.
    """

    def __init__(self, href: str):
        self.href = href
        self.history: list[str] = [href]

    def replace(self, url: str) -> None:
        """Swap the current address without a reload (history.replaceState)."""
        self.href = url
        self.history[-1] = url

    def assign(self, url: str) -> None:
        """Navigate to a new address (location.href = ...)."""
        self.href = url
        self.history.append(url)

    @property
    def query(self) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlsplit(self.href).query).items()}

    @property
    def fragment(self) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlsplit(self.href).fragment).items()}

    def handshake_response_type(self) -> ResponseType | None:
        """
        Which handshake mode the current address is returning from, if any.

        An authorization code (or error) in the query means code mode; an
        access token (or error) in the fragment means token mode.
        """
        query, fragment = self.query, self.fragment
        if "code" in query or "error" in query:
            return ResponseType.CODE
        if TOKEN_FRAGMENT_KEY in fragment or "error" in fragment:
            return ResponseType.TOKEN
        return None
