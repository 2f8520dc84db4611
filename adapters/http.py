"""
Shared HTTP plumbing for the ArcGIS sharing API.

ArcGIS answers most failures with HTTP 200 and an {"error": {...}} body,
so every response goes through check_response() before the caller looks
at the payload.
"""

from typing import Any

import httpx

# Default timeout for all portal calls (seconds)
HTTP_TIMEOUT = 60

USER_AGENT = "ncng-template-saver/1.0"


class ArcGISResponseError(Exception):
    """
    Error reported by the portal, either as an HTTP status or an error body.

    status_code is the HTTP status, or the error body's code when the HTTP
    status was 200. retry.convert_to_portal_error maps it to a kind.
    """

    def __init__(self, status_code: int, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details or []

    def __str__(self) -> str:
        extra = f" ({'; '.join(self.details)})" if self.details else ""
        return f"{self.status_code}: {self.message}{extra}"


def build_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """
    Create the async client shared by the portal and identity adapters.

    Pass a transport (e.g. httpx.MockTransport) in tests.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(HTTP_TIMEOUT),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        follow_redirects=True,
        transport=transport,
    )


def check_response(response: httpx.Response) -> dict[str, Any]:
    """
    Return the JSON payload of a portal response or raise ArcGISResponseError.

    Raises:
        ArcGISResponseError: On HTTP error status, non-JSON body, or error body
    """
    if response.status_code >= 400:
        raise ArcGISResponseError(response.status_code, response.reason_phrase or "HTTP error")

    try:
        payload = response.json()
    except ValueError as e:
        raise ArcGISResponseError(response.status_code, f"Invalid JSON from portal: {e}") from e

    if not isinstance(payload, dict):
        raise ArcGISResponseError(response.status_code, "Unexpected response shape from portal")

    error = payload.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        raise ArcGISResponseError(
            code if isinstance(code, int) else response.status_code,
            error.get("message") or error.get("messageCode") or "Portal error",
            [str(d) for d in error.get("details") or []],
        )

    return payload
