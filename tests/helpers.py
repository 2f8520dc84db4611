"""
Shared test helpers for the NCNG template saver.

Centralizes the fake-portal wiring that repeats across test files: an
httpx.MockTransport that routes by method and path suffix, records every
request, and answers with canned JSON, responses or exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import parse_qs

import httpx

from adapters.http import build_client
from models import Authenticated, Credential

PORTAL = "https://www.arcgis.com/sharing/rest"


def form(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def params(request: httpx.Request) -> dict[str, str]:
    """Query string plus form body, for asserting on what was sent."""
    merged = dict(request.url.params)
    if request.method == "POST":
        merged.update(form(request))
    return merged


@dataclass
class FakePortal:
    """Route table for a mocked ArcGIS sharing API.

    Each route holds a queue of answers. Answers are consumed in order; the
    last one repeats. An answer can be a dict (200 JSON), an httpx.Response,
    or an exception to raise from the transport.

    Example:
        portal = FakePortal()
        portal.on("GET", "/content/users/alice", {"folders": []})
        portal.on("POST", "/copy", httpx.ConnectError("down"), {"itemId": "i1"})
        client = portal.client()
    """
    routes: list[tuple[str, str, list[Any]]] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def on(self, method: str, path_suffix: str, *answers: Any) -> "FakePortal":
        self.routes.append((method, path_suffix, list(answers)))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for method, suffix, answers in self.routes:
            if request.method == method and request.url.path.endswith(suffix):
                answer = answers.pop(0) if len(answers) > 1 else answers[0]
                if isinstance(answer, Exception):
                    raise answer
                if isinstance(answer, httpx.Response):
                    return answer
                return httpx.Response(200, json=answer)
        return httpx.Response(404, json={"error": {"code": 404, "message": f"No route for {request.url.path}"}})

    def client(self) -> httpx.AsyncClient:
        return build_client(httpx.MockTransport(self.handler))

    def calls(self, path_suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path_suffix)]


def make_credential(
    username: str = "alice",
    *,
    expires_in: timedelta = timedelta(hours=2),
    refresh_token: str | None = None,
    refresh_expires_in: timedelta | None = None,
    token: str = "tok-123",
) -> Credential:
    """Credential relative to now (negative expires_in = already expired)."""
    now = datetime.now(timezone.utc)
    return Credential(
        username=username,
        token=token,
        expires=now + expires_in,
        portal=PORTAL,
        client_id="app-id",
        refresh_token=refresh_token,
        refresh_token_expires=now + refresh_expires_in if refresh_expires_in is not None else None,
    )


def make_session(username: str = "alice", **kwargs: Any) -> Authenticated:
    credential = make_credential(username, **kwargs)
    return Authenticated(credential.username, credential)
