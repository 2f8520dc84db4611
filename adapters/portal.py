"""
Portal adapter — ArcGIS sharing API content operations.

Thin wrappers over the REST endpoints the template saver needs:
- list folders:   GET  content/users/{user}
- create folder:  POST content/users/{user}/createFolder
- copy item:      POST content/users/{owner}/items/{id}/copy
- update item:    POST content/users/{user}[/{folder}]/items/{id}/update

Every call takes the signed-in Credential and raises PortalError
(TransportError) on failure. Only the folder listing is retried; the
mutating calls run once.
"""

from typing import Any

import httpx

from adapters.http import build_client, check_response
from logging_config import log_api_call, log_api_result
from models import (
    CopyItemRequest,
    Credential,
    ErrorKind,
    Folder,
    TransportError,
    UpdateItemRequest,
)
from retry import with_retry

__all__ = ["PortalClient"]


class PortalClient:
    """Content Service client bound to one portal."""

    def __init__(self, portal_url: str, client: httpx.AsyncClient | None = None):
        self.portal_url = portal_url.rstrip("/")
        self._client = client or build_client()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _params(self, credential: Credential, **params: Any) -> dict[str, Any]:
        return {"f": "json", "token": credential.token, **params}

    def _user_url(self, username: str) -> str:
        return f"{self.portal_url}/content/users/{username}"

    @with_retry(max_attempts=3, delay_ms=500)
    async def list_folders(self, credential: Credential) -> list[Folder]:
        """List the user's folders in portal order."""
        log_api_call("portal", "list_folders", user=credential.username)
        response = await self._client.get(
            self._user_url(credential.username),
            params=self._params(credential),
        )
        payload = check_response(response)
        folders = [
            Folder(id=f["id"], title=f.get("title", ""))
            for f in payload.get("folders") or []
            if f.get("id")
        ]
        log_api_result("portal", "list_folders", len(folders))
        return folders

    @with_retry(max_attempts=1)
    async def create_folder(self, credential: Credential, title: str) -> str:
        """Create a folder in the user's content. Returns the folder id."""
        log_api_call("portal", "create_folder", user=credential.username, title=title)
        response = await self._client.post(
            f"{self._user_url(credential.username)}/createFolder",
            data=self._params(credential, title=title),
        )
        payload = check_response(response)
        folder_id = (payload.get("folder") or {}).get("id")
        if not folder_id:
            raise TransportError(
                ErrorKind.UNKNOWN,
                f"Portal did not return a folder id for '{title}'",
                {"response": payload},
            )
        log_api_result("portal", "create_folder")
        return folder_id

    @with_retry(max_attempts=1)
    async def copy_item(self, credential: Credential, request: CopyItemRequest) -> str:
        """
        Copy a source item into the signed-in user's content.

        The folder parameter is omitted entirely when copying to root.

        Returns:
            The new item id
        """
        log_api_call(
            "portal", "copy_item",
            source=f"{request.source_owner}/{request.source_item_id}",
            title=request.title, folder=request.folder_id,
        )
        params: dict[str, Any] = {
            "title": request.title,
            "tags": request.tags,
            "includeResources": _flag(request.include_resources),
            "copyPrivateResources": _flag(request.copy_private_resources),
        }
        if request.folder_id:
            params["folder"] = request.folder_id

        response = await self._client.post(
            f"{self._user_url(request.source_owner)}/items/{request.source_item_id}/copy",
            data=self._params(credential, **params),
        )
        payload = check_response(response)
        item_id = payload.get("itemId") or payload.get("id")
        if not item_id:
            raise TransportError(
                ErrorKind.UNKNOWN,
                "Portal did not return an item id for the copy",
                {"response": payload},
            )
        log_api_result("portal", "copy_item")
        return item_id

    @with_retry(max_attempts=1)
    async def update_item(self, credential: Credential, request: UpdateItemRequest) -> None:
        """Patch snippet and/or description on an item the user owns."""
        log_api_call("portal", "update_item", item=request.item_id, folder=request.folder_id)
        params: dict[str, Any] = {}
        if request.snippet:
            params["snippet"] = request.snippet
        if request.description:
            params["description"] = request.description

        base = self._user_url(credential.username)
        if request.folder_id:
            url = f"{base}/{request.folder_id}/items/{request.item_id}/update"
        else:
            url = f"{base}/items/{request.item_id}/update"

        response = await self._client.post(url, data=self._params(credential, **params))
        payload = check_response(response)
        if payload.get("success") is False:
            raise TransportError(
                ErrorKind.UNKNOWN,
                f"Portal reported update failure for item {request.item_id}",
                {"response": payload},
            )
        log_api_result("portal", "update_item")


def _flag(value: bool) -> str:
    # Portal form params expect lowercase booleans
    return "true" if value else "false"
