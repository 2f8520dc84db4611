"""
Provisioning orchestrator — folder → copy → patch as one logical operation.

    IDLE → RESOLVING_FOLDER → COPYING_TEMPLATE → PATCHING_METADATA → DONE
                     ↘                ↘                  ↘
                                    FAILED

Steps run strictly in sequence and are never retried automatically.
Failures say which step broke and what already exists:
- folder / copy failures raise TransportError; nothing was copied, so a
  retry is safe (a folder created in step one is named in the details)
- patch failures raise PartialProvisioningError with the new item id, so a
  retry calls patch_metadata() instead of copying again

Only one submit() runs at a time. A second call while one is in flight is
rejected before any network call.
"""

from typing import Callable

from adapters.portal import PortalClient
from logging_config import log_step, logger
from models import (
    Authenticated,
    AuthenticationError,
    CopyItemRequest,
    CreateFolder,
    FolderChoice,
    PartialProvisioningError,
    PortalError,
    ProvisionMetadata,
    ProvisionResult,
    ProvisionStep,
    SessionState,
    SubmissionInProgressError,
    TransportError,
    UpdateItemRequest,
    ValidationError,
)
from naming import TITLE_GRAMMAR, normalize_tags
from portal_config import PortalConfig
from state import Event, FolderCreated, StepEntered, SubmitFailed, SubmitStarted, SubmitSucceeded
from tools.folders import FolderResolver


class Orchestrator:
    """Runs provisioning transactions for one configured template."""

    def __init__(
        self,
        config: PortalConfig,
        portal: PortalClient,
        folders: FolderResolver,
        on_event: Callable[[Event], None] | None = None,
    ):
        self.config = config
        self.portal = portal
        self.folders = folders
        self.on_event = on_event
        self.step = ProvisionStep.IDLE
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    def _emit(self, event: Event) -> None:
        if self.on_event is not None:
            self.on_event(event)

    def _move_to(self, step: ProvisionStep, **context: object) -> None:
        log_step(self.step.value, step.value, **context)
        self.step = step

    def _enter(self, step: ProvisionStep) -> None:
        self._move_to(step)
        self._emit(StepEntered(step))

    async def submit(
        self,
        session: SessionState | None,
        title: str,
        title_valid: bool,
        folder_choice: FolderChoice,
        metadata: ProvisionMetadata | None = None,
    ) -> ProvisionResult:
        """
        Provision a copy of the template.

        Args:
            session: Current session state; must be Authenticated
            title: Canonical title for the copy
            title_valid: Result of is_valid_title(title), gated by the caller
            folder_choice: Existing folder / root, or a folder to create
            metadata: Tags, summary, description

        Returns:
            ProvisionResult with the new item id and folder id (None for root)

        Raises:
            SubmissionInProgressError: Another submit() is running
            AuthenticationError: No established session
            ValidationError: Invalid title or blank new-folder name
            TransportError: Folder creation or template copy failed
            PartialProvisioningError: Copy succeeded, metadata patch failed
        """
        # Checked and set before the first await so overlapping calls can't interleave
        if self._in_flight:
            raise SubmissionInProgressError()
        if not isinstance(session, Authenticated):
            raise AuthenticationError("Please sign in first.")
        if not title_valid:
            raise ValidationError(
                f"Title does not match the NCNG naming convention: {TITLE_GRAMMAR}",
                {"title": title},
            )
        if isinstance(folder_choice, CreateFolder) and not folder_choice.title.strip():
            raise ValidationError("Please enter a folder name.")

        metadata = metadata or ProvisionMetadata()
        self._in_flight = True
        self._emit(SubmitStarted())
        try:
            result = await self._run(session, title, folder_choice, metadata)
        except PortalError as e:
            self._move_to(ProvisionStep.FAILED, kind=e.kind.value)
            self._emit(SubmitFailed(e))
            raise
        finally:
            self._in_flight = False

        self._move_to(ProvisionStep.DONE)
        self._emit(SubmitSucceeded(result))
        return result

    async def _run(
        self,
        session: Authenticated,
        title: str,
        folder_choice: FolderChoice,
        metadata: ProvisionMetadata,
    ) -> ProvisionResult:
        self._enter(ProvisionStep.RESOLVING_FOLDER)
        try:
            target = await self.folders.resolve_target(session, folder_choice)
        except (ValidationError, AuthenticationError):
            raise
        except PortalError as e:
            raise _at_step(e, ProvisionStep.RESOLVING_FOLDER) from e
        folder_id = target.folder_id
        if target.created and folder_id:
            self._emit(FolderCreated(folder_id))

        self._enter(ProvisionStep.COPYING_TEMPLATE)
        request = CopyItemRequest(
            source_owner=self.config.template_owner,
            source_item_id=self.config.template_item_id,
            title=title,
            tags=normalize_tags(metadata.tags),
            folder_id=folder_id,
        )
        try:
            item_id = await self.portal.copy_item(session.credential, request)
        except (ValidationError, AuthenticationError):
            raise
        except PortalError as e:
            created = {"created_folder_id": folder_id} if target.created else {}
            raise _at_step(e, ProvisionStep.COPYING_TEMPLATE, **created) from e
        logger.info(f"Copied template to {item_id} ('{title}')")

        await self.patch_metadata(session, item_id, folder_id, metadata)

        return ProvisionResult(
            item_id=item_id,
            folder_id=folder_id,
            title=title,
            web_link=self.config.item_page_url(item_id),
            cues={"folder_created": target.created} if target.created else {},
        )

    async def resume(
        self,
        session: SessionState | None,
        partial: PartialProvisioningError,
        title: str,
        metadata: ProvisionMetadata,
    ) -> ProvisionResult:
        """
        Finish a transaction that failed at the patch step. Never re-copies.

        Raises:
            SubmissionInProgressError: Another transaction is running
            AuthenticationError: No established session
            PartialProvisioningError: The patch failed again
        """
        if self._in_flight:
            raise SubmissionInProgressError()
        if not isinstance(session, Authenticated):
            raise AuthenticationError("Please sign in first.")

        self._in_flight = True
        self._emit(SubmitStarted())
        try:
            await self.patch_metadata(session, partial.item_id, partial.folder_id, metadata)
        except PortalError as e:
            self._move_to(ProvisionStep.FAILED, kind=e.kind.value)
            self._emit(SubmitFailed(e))
            raise
        finally:
            self._in_flight = False

        result = ProvisionResult(
            item_id=partial.item_id,
            folder_id=partial.folder_id,
            title=title,
            web_link=self.config.item_page_url(partial.item_id),
            cues={"resumed": True},
        )
        self._move_to(ProvisionStep.DONE)
        self._emit(SubmitSucceeded(result))
        return result

    async def patch_metadata(
        self,
        session: Authenticated,
        item_id: str,
        folder_id: str | None,
        metadata: ProvisionMetadata,
    ) -> bool:
        """
        Patch summary/description onto an already-copied item.

        Safe to call again after a PartialProvisioningError. Does nothing when
        both fields are blank.

        Returns:
            True if an update was sent

        Raises:
            PartialProvisioningError: The update failed
        """
        request = UpdateItemRequest(
            item_id=item_id,
            folder_id=folder_id,
            snippet=metadata.summary.strip() or None,
            description=metadata.description.strip() or None,
        )
        if request.is_empty:
            return False

        self._enter(ProvisionStep.PATCHING_METADATA)
        try:
            await self.portal.update_item(session.credential, request)
        except PortalError as e:
            raise PartialProvisioningError(
                f"Web map {item_id} was created, but updating its details failed: {e.message}",
                item_id=item_id,
                folder_id=folder_id,
                cause=e,
            ) from e
        return True


def _at_step(error: PortalError, step: ProvisionStep, **details: object) -> TransportError:
    """Tag a transport failure with the step it happened in."""
    return TransportError(
        error.kind,
        error.message,
        {**error.details, "step": step.value, **details},
        retryable=error.retryable,
    )
