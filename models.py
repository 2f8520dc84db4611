"""
Type definitions for the NCNG template saver.

Dataclasses defining the contracts between layers:
- Adapters produce these structures from ArcGIS REST responses
- Tools (session, folders, provision) consume and return them
- state.py folds them into the application-state record

These types make the adapter→tool contract explicit and IDE-checkable.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ============================================================================
# ERROR TYPES
# ============================================================================

class ErrorKind(Enum):
    """Categories of errors for consistent handling."""
    INVALID_INPUT = "invalid_input"      # Bad parameters, caught before any network call
    AUTH_REQUIRED = "auth_required"      # No session established
    AUTH_FAILED = "auth_failed"          # Handshake could not start or complete
    AUTH_EXPIRED = "auth_expired"        # Token rejected by the portal
    PERMISSION_DENIED = "permission_denied"  # No access to resource
    NOT_FOUND = "not_found"              # Resource doesn't exist
    RATE_LIMITED = "rate_limited"        # Hit API quota
    NETWORK_ERROR = "network_error"      # Connection failed
    TIMEOUT = "timeout"                  # Request timed out
    PARTIAL = "partial"                  # Item created, later step failed
    IN_PROGRESS = "in_progress"          # Another submission is running
    UNKNOWN = "unknown"                  # Unexpected error


class PortalError(Exception):
    """
    Structured error for consistent handling across layers.

    Adapters raise these on API failures.
    Surfaces (server.py, cli.py) catch and format with to_dict().

    Inherits from Exception so it can be raised.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for tool response."""
        return {
            "error": True,
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            **self.details,
        }


class ValidationError(PortalError):
    """Bad input shape. Never reaches the network layer."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorKind.INVALID_INPUT, message, details)


class AuthenticationError(PortalError):
    """No session, or the handshake failed to start or complete."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.AUTH_REQUIRED,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(kind, message, details)


class TransportError(PortalError):
    """A Content Service or Identity Provider call failed before creating anything."""


class PartialProvisioningError(PortalError):
    """
    The template copy succeeded but a later step failed.

    Carries the created item id so a retry re-patches instead of re-copying.
    """

    def __init__(
        self,
        message: str,
        item_id: str,
        folder_id: str | None = None,
        cause: PortalError | None = None,
    ):
        details: dict[str, Any] = {"item_id": item_id, "folder_id": folder_id}
        if cause is not None:
            details["cause"] = cause.kind.value
        super().__init__(ErrorKind.PARTIAL, message, details)
        self.item_id = item_id
        self.folder_id = folder_id
        self.cause = cause


class SubmissionInProgressError(PortalError):
    """A provisioning transaction is already in flight."""

    def __init__(self, message: str = "A submission is already in progress."):
        super().__init__(ErrorKind.IN_PROGRESS, message)


# ============================================================================
# IDENTITY TYPES
# ============================================================================

class ResponseType(Enum):
    """OAuth response mode used for a handshake."""
    TOKEN = "token"  # Implicit grant: access token in the URL fragment
    CODE = "code"    # Authorization code (PKCE) in the query string


@dataclass(frozen=True)
class Credential:
    """
    Opaque portal credential.

    Only adapters/identity.py and tools/session.py look inside this.
    Everything else passes it through to the portal adapter.
    """
    username: str
    token: str
    expires: datetime
    portal: str
    client_id: str
    refresh_token: str | None = None
    refresh_token_expires: datetime | None = None
    ssl: bool = True

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires

    def can_refresh(self, now: datetime | None = None) -> bool:
        if not self.refresh_token:
            return False
        if self.refresh_token_expires is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now < self.refresh_token_expires


@dataclass(frozen=True)
class Unauthenticated:
    """No session. Initial and terminal state."""


@dataclass(frozen=True)
class Authenticating:
    """Handshake redirect started, waiting for the provider to come back."""
    response_type: ResponseType = ResponseType.TOKEN


@dataclass(frozen=True)
class Authenticated:
    """Established identity session."""
    subject: str
    credential: Credential


SessionState = Unauthenticated | Authenticating | Authenticated


@dataclass(frozen=True)
class RestoreOk:
    """A stored session was read back successfully."""
    credential: Credential


@dataclass(frozen=True)
class RestoreErr:
    """A stored session could not be restored. Reason is for logs, not users."""
    reason: str


RestoreResult = RestoreOk | RestoreErr


# ============================================================================
# CONTENT TYPES
# ============================================================================

@dataclass(frozen=True)
class Folder:
    """A folder in the user's content."""
    id: str
    title: str


@dataclass(frozen=True)
class FolderListing:
    """
    Folder list for a user.

    suggested_id is the conventional default folder, if the user has one.
    It is a suggestion only; explicit user choices win.
    """
    folders: tuple[Folder, ...]
    suggested_id: str | None = None


@dataclass(frozen=True)
class UseExistingFolder:
    """Save into an existing folder, or root when folder_id is None."""
    folder_id: str | None = None
    explicit: bool = False  # True once the user picked it themselves


@dataclass(frozen=True)
class CreateFolder:
    """Create a new folder with this title and save into it."""
    title: str


FolderChoice = UseExistingFolder | CreateFolder


@dataclass(frozen=True)
class FolderTarget:
    """Resolved folder target. folder_id None means root."""
    folder_id: str | None
    created: bool = False


@dataclass(frozen=True)
class ProvisionMetadata:
    """Optional metadata entered alongside the title."""
    tags: str = ""
    summary: str = ""
    description: str = ""


# ============================================================================
# REQUEST / RESPONSE RECORDS
# ============================================================================

@dataclass(frozen=True)
class CopyItemRequest:
    """Copy a template item into the signed-in user's content."""
    source_owner: str
    source_item_id: str
    title: str
    tags: str = ""
    folder_id: str | None = None  # Omitted from the request for root
    include_resources: bool = True
    copy_private_resources: bool = True


@dataclass(frozen=True)
class UpdateItemRequest:
    """Patch item details. Only non-empty fields are sent."""
    item_id: str
    folder_id: str | None = None
    snippet: str | None = None
    description: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.snippet and not self.description


# ============================================================================
# PROVISIONING TYPES
# ============================================================================

class ProvisionStep(Enum):
    """Provisioning transaction states."""
    IDLE = "idle"
    RESOLVING_FOLDER = "resolving_folder"
    COPYING_TEMPLATE = "copying_template"
    PATCHING_METADATA = "patching_metadata"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisionResult:
    """Successful provisioning. Immutable once produced."""
    item_id: str
    folder_id: str | None
    title: str
    web_link: str
    cues: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "folder_id": self.folder_id,
            "title": self.title,
            "web_link": self.web_link,
            "operation": "provision",
            "cues": self.cues,
        }
