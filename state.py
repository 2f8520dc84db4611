"""
Application state record and its reducer.

AppState holds everything the form used to keep in loose variables:
session, naming fields, folder state, metadata, and the transaction.
reduce(state, event) is a pure function; tools/context.py owns the one
live AppState and feeds it events.

No I/O, no logging.
"""

from dataclasses import dataclass, field, replace
from datetime import date

from models import (
    Authenticated,
    Authenticating,
    CreateFolder,
    Folder,
    FolderChoice,
    PortalError,
    ProvisionMetadata,
    ProvisionResult,
    ProvisionStep,
    ResponseType,
    SessionState,
    Unauthenticated,
    UseExistingFolder,
)
from naming import DEFAULT_FOLDER_TITLE, Environment, NamingFields, default_fiscal_year, normalize_fiscal_year


# ============================================================================
# STATE
# ============================================================================

@dataclass(frozen=True)
class FolderState:
    """Known folders, the active choice, and the last typed new-folder name."""
    folders: tuple[Folder, ...] = ()
    choice: FolderChoice = field(default_factory=UseExistingFolder)
    new_folder_title: str = DEFAULT_FOLDER_TITLE


@dataclass(frozen=True)
class TransactionState:
    """Provisioning progress. busy is the in-flight flag."""
    step: ProvisionStep = ProvisionStep.IDLE
    busy: bool = False
    result: ProvisionResult | None = None
    error: PortalError | None = None


@dataclass(frozen=True)
class AppState:
    session: SessionState = field(default_factory=Unauthenticated)
    fields: NamingFields = field(default_factory=NamingFields)
    folders: FolderState = field(default_factory=FolderState)
    metadata: ProvisionMetadata = field(default_factory=ProvisionMetadata)
    transaction: TransactionState = field(default_factory=TransactionState)

    @property
    def title(self) -> str:
        return self.fields.title


def initial_state(today: date | None = None) -> AppState:
    """Fresh state with the fiscal year defaulted."""
    return AppState(fields=NamingFields(fiscal_year=default_fiscal_year(today)))


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True)
class SignInStarted:
    response_type: ResponseType = ResponseType.TOKEN


@dataclass(frozen=True)
class SessionEstablished:
    session: Authenticated


@dataclass(frozen=True)
class SessionCleared:
    today: date | None = None


@dataclass(frozen=True)
class FieldEdited:
    """One naming field changed. name is a NamingFields attribute."""
    name: str
    value: str


@dataclass(frozen=True)
class MetadataEdited:
    name: str  # tags | summary | description
    value: str


@dataclass(frozen=True)
class FoldersLoaded:
    folders: tuple[Folder, ...]
    choice: FolderChoice


@dataclass(frozen=True)
class FolderChoiceChanged:
    choice: FolderChoice


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class StepEntered:
    step: ProvisionStep


@dataclass(frozen=True)
class FolderCreated:
    folder_id: str


@dataclass(frozen=True)
class SubmitSucceeded:
    result: ProvisionResult


@dataclass(frozen=True)
class SubmitFailed:
    error: PortalError


Event = (
    SignInStarted | SessionEstablished | SessionCleared | FieldEdited | MetadataEdited
    | FoldersLoaded | FolderChoiceChanged | SubmitStarted | StepEntered | FolderCreated
    | SubmitSucceeded | SubmitFailed
)

_NAMING_FIELDS = frozenset({"portfolio", "environment", "purpose", "owner", "fiscal_year"})
_METADATA_FIELDS = frozenset({"tags", "summary", "description"})


# ============================================================================
# REDUCER
# ============================================================================

def reduce(state: AppState, event: Event) -> AppState:
    """
    Return the state after event. Never mutates state.

    Raises:
        ValueError: Unknown field name or environment value
    """
    if isinstance(event, SignInStarted):
        return replace(state, session=Authenticating(event.response_type))

    if isinstance(event, SessionEstablished):
        return replace(state, session=event.session)

    if isinstance(event, SessionCleared):
        # Sign-out resets the form but keeps the fiscal year defaulted
        return initial_state(event.today)

    if isinstance(event, FieldEdited):
        return replace(state, fields=_edit_field(state.fields, event.name, event.value))

    if isinstance(event, MetadataEdited):
        if event.name not in _METADATA_FIELDS:
            raise ValueError(f"Unknown metadata field: {event.name}")
        return replace(state, metadata=replace(state.metadata, **{event.name: event.value}))

    if isinstance(event, FoldersLoaded):
        return replace(state, folders=replace(state.folders, folders=event.folders, choice=event.choice))

    if isinstance(event, FolderChoiceChanged):
        choice = event.choice
        new_title = state.folders.new_folder_title
        if isinstance(choice, UseExistingFolder):
            choice = UseExistingFolder(choice.folder_id or None, explicit=True)
        elif isinstance(choice, CreateFolder):
            new_title = choice.title
        return replace(state, folders=replace(state.folders, choice=choice, new_folder_title=new_title))

    if isinstance(event, SubmitStarted):
        return replace(state, transaction=TransactionState(step=ProvisionStep.IDLE, busy=True))

    if isinstance(event, StepEntered):
        return replace(state, transaction=replace(state.transaction, step=event.step))

    if isinstance(event, FolderCreated):
        # Later retries reuse this folder instead of creating another
        return replace(
            state,
            folders=replace(state.folders, choice=UseExistingFolder(event.folder_id, explicit=True)),
        )

    if isinstance(event, SubmitSucceeded):
        return replace(
            state,
            transaction=TransactionState(step=ProvisionStep.DONE, busy=False, result=event.result),
        )

    if isinstance(event, SubmitFailed):
        return replace(
            state,
            transaction=TransactionState(step=ProvisionStep.FAILED, busy=False, error=event.error),
        )

    raise TypeError(f"Unknown event: {event!r}")


def _edit_field(fields: NamingFields, name: str, value: str) -> NamingFields:
    if name not in _NAMING_FIELDS:
        raise ValueError(f"Unknown naming field: {name}")
    if name == "environment":
        return replace(fields, environment=Environment(value.strip().upper()))
    if name == "fiscal_year":
        return replace(fields, fiscal_year=normalize_fiscal_year(value))
    return replace(fields, **{name: value})
