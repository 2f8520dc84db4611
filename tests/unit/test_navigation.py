"""Tests for the navigation context."""

import pytest

from adapters.navigation import Navigator
from models import ResponseType


class TestHandshakeDetection:

    @pytest.mark.parametrize("href,expected", [
        ("http://localhost:3000/", None),
        ("http://localhost:3000/?foo=bar", None),
        ("http://localhost:3000/?code=abc&state=s", ResponseType.CODE),
        ("http://localhost:3000/?error=access_denied", ResponseType.CODE),
        ("http://localhost:3000/#access_token=t&username=alice", ResponseType.TOKEN),
        ("http://localhost:3000/#error=access_denied&error_description=no", ResponseType.TOKEN),
        ("http://localhost:3000/#section-2", None),
    ])
    def test_response_type(self, href: str, expected: ResponseType | None) -> None:
        assert Navigator(href).handshake_response_type() == expected

    def test_query_and_fragment(self) -> None:
        nav = Navigator("http://localhost:3000/?code=abc#access_token=t")
        assert nav.query == {"code": "abc"}
        assert nav.fragment == {"access_token": "t"}


class TestHistory:

    def test_replace_does_not_add_entry(self) -> None:
        nav = Navigator("http://localhost:3000/#access_token=t")
        nav.replace("http://localhost:3000/")
        assert nav.href == "http://localhost:3000/"
        assert nav.history == ["http://localhost:3000/"]

    def test_assign_adds_entry(self) -> None:
        nav = Navigator("http://localhost:3000/")
        nav.assign("http://localhost:3000/?code=abc")
        assert nav.history == ["http://localhost:3000/", "http://localhost:3000/?code=abc"]
