"""
Release control-plane API client.

Async client for the release asset endpoints: identity, release access,
asset lookup/creation, stream upload and the multipart
begin/commit/cancel calls. Retry, timeout and backoff are delegated to
core.http.ResilientHttpClient; this module only interprets responses.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import aiohttp

from core.errors.exceptions import ApiError, AuthError, ConflictError, ForbiddenError
from core.http.client import ResilientHttpClient
from core.http.outcomes import HttpResponse
from core.logging.setup import get_logger
from core.logging.utilities import LoggedClass, logged_operation
from release_uploader.config import UploaderConfig
from release_uploader.schemas import (
    BeginUploadResponse,
    CommitPayload,
    FileMetadata,
    UploadResult,
)

logger = get_logger(__name__)

# Truncation limit for response bodies quoted in errors
ERROR_BODY_LIMIT = 500


def quote_odata_string(value: str) -> str:
    """Quote a string literal for an OData key predicate."""
    return "'" + value.replace("'", "''") + "'"


def release_asset_by_key(release_id: int, asset_key: str) -> str:
    """Resource path addressing a release asset by (release, key)."""
    return (
        f"resin/release_asset(release={release_id},"
        f"asset_key={quote_odata_string(asset_key)})"
    )


def api_error(method: str, endpoint: str, response: HttpResponse) -> ApiError:
    """Build an ApiError for an unexpected control-plane response."""
    return ApiError(
        f"Failed to fetch {method} {endpoint}: "
        f"HTTP {response.status} {response.text(limit=ERROR_BODY_LIMIT)}".rstrip(),
        status_code=response.status,
        context={"api_method": method, "api_endpoint": endpoint},
    )


class ReleaseApiClient(LoggedClass):
    """
    Async client for the release asset control plane.

    Usage:
        async with ReleaseApiClient("https://api.example.io", token) as api:
            await api.whoami()
            await api.can_access_release(42)
            asset_id = await api.get_release_asset_id(42, "firmware")

    Configuration:
        api_url: Control-plane base URL (trailing slashes stripped)
        auth_token: Bearer token sent with every request
        config: UploaderConfig with timeout and retry settings
        http: Pre-built ResilientHttpClient (tests inject one)
    """

    log_component = "release_api"

    def __init__(
        self,
        api_url: str,
        auth_token: str,
        config: Optional[UploaderConfig] = None,
        http: Optional[ResilientHttpClient] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.config = config or UploaderConfig()

        self._http = http or ResilientHttpClient(
            base_url=self.api_url,
            headers={"Authorization": f"Bearer {auth_token}"},
            timeout_seconds=self.config.request_timeout_seconds,
            max_retries=self.config.max_retries,
            initial_backoff_ms=self.config.initial_backoff_ms,
            max_backoff_seconds=self.config.max_backoff_seconds,
            jitter_seconds=self.config.backoff_jitter_seconds,
        )

        super().__init__()

    async def __aenter__(self) -> "ReleaseApiClient":
        await self._http.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self._http.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        data: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> HttpResponse:
        response = await self._http.request(
            method, endpoint, json=json_body, data=data, params=params
        )
        self._log(
            logging.DEBUG,
            f"{method} {endpoint} -> {response.status}",
            api_method=method,
            api_endpoint=endpoint,
            http_status=response.status,
        )
        return response

    @staticmethod
    def _json(response: HttpResponse, method: str, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Failed to fetch {method} {endpoint}: invalid JSON response",
                status_code=response.status,
                cause=e,
            ) from e

    @logged_operation(level=logging.DEBUG)
    async def whoami(self) -> Dict[str, Any]:
        """
        Return the identity behind the auth token.

        Raises:
            AuthError: If the token is not accepted
        """
        endpoint = "actor/v1/whoami"
        response = await self._request("GET", endpoint)
        if not response.ok:
            raise AuthError(
                "Not logged in",
                context={"http_status": response.status},
            )
        return self._json(response, "GET", endpoint) or {}

    @logged_operation(level=logging.DEBUG)
    async def can_access_release(self, release_id: int) -> None:
        """
        Verify the caller may update the release.

        Raises:
            ForbiddenError: If access is denied or the release is unknown
        """
        endpoint = f"resin/release({release_id})/canAccess"
        response = await self._request(
            "POST", endpoint, json_body={"action": "update"}
        )
        body = self._json(response, "POST", endpoint) if response.ok else None
        rows = body.get("d") if isinstance(body, dict) else None
        if not response.ok or not rows or rows[0].get("id") is None:
            raise ForbiddenError(
                "You do not have necessary access to this release",
                context={"release_id": release_id, "http_status": response.status},
            )

    @logged_operation(level=logging.DEBUG)
    async def get_release_asset_id(
        self, release_id: int, asset_key: str
    ) -> Optional[int]:
        """Look up a release asset id by key; None if it does not exist."""
        endpoint = release_asset_by_key(release_id, asset_key)
        response = await self._request("GET", endpoint, params={"$select": "id"})
        if not response.ok:
            raise api_error("GET", endpoint, response)
        rows = (self._json(response, "GET", endpoint) or {}).get("d") or []
        if not rows:
            return None
        return rows[0].get("id")

    @logged_operation(level=logging.DEBUG)
    async def create_release_asset(self, release_id: int, asset_key: str) -> int:
        """
        Create an empty release asset record.

        Raises:
            ConflictError: If an asset with this key already exists (409)
            ApiError: On any other non-2xx response
        """
        endpoint = "resin/release_asset"
        response = await self._request(
            "POST",
            endpoint,
            json_body={"asset_key": asset_key, "release": release_id},
        )
        if response.status == 409:
            raise ConflictError(
                f"A release asset for {release_id} - {asset_key} already exists",
                context={"release_id": release_id, "asset_key": asset_key},
            )
        if not response.ok:
            raise api_error("POST", endpoint, response)
        return int(self._json(response, "POST", endpoint)["id"])

    @logged_operation(level=logging.DEBUG)
    async def begin_multipart_upload(
        self,
        release_asset_id: int,
        metadata: FileMetadata,
        chunk_size: int,
    ) -> BeginUploadResponse:
        """Open a multipart session and receive its pre-signed part URLs."""
        endpoint = f"resin/release_asset({release_asset_id})/beginUpload"
        response = await self._request(
            "POST",
            endpoint,
            json_body={
                "asset": {
                    "filename": metadata.filename,
                    "content_type": metadata.content_type,
                    "size": metadata.size,
                    "chunk_size": chunk_size,
                }
            },
        )
        if not response.ok:
            raise api_error("POST", endpoint, response)
        return BeginUploadResponse.model_validate(
            self._json(response, "POST", endpoint)
        )

    @logged_operation(level=logging.DEBUG)
    async def commit_multipart_upload(
        self,
        release_asset_id: int,
        session_id: str,
        payload: CommitPayload,
    ) -> str:
        """Finalize a multipart session; returns the asset download URL."""
        endpoint = f"resin/release_asset({release_asset_id})/commitUpload"
        response = await self._request(
            "POST",
            endpoint,
            json_body={"uuid": session_id, "providerCommitData": payload.to_wire()},
        )
        if not response.ok:
            raise api_error("POST", endpoint, response)
        body = self._json(response, "POST", endpoint) or {}
        href = body.get("href")
        if not href:
            raise ApiError(
                f"Failed to fetch POST {endpoint}: response has no href",
                status_code=response.status,
            )
        return href

    @logged_operation(level=logging.DEBUG)
    async def cancel_multipart_upload(
        self, release_asset_id: int, session_id: str
    ) -> None:
        """Abort a multipart session; any 2xx is success."""
        endpoint = f"resin/release_asset({release_asset_id})/cancelUpload"
        response = await self._request(
            "POST", endpoint, json_body={"uuid": session_id}
        )
        if not response.ok:
            raise api_error("POST", endpoint, response)

    @logged_operation(level=logging.DEBUG)
    async def upload_release_asset_stream(
        self,
        release_id: int,
        asset_key: str,
        file_path: str,
        metadata: FileMetadata,
        release_asset_id: Optional[int] = None,
    ) -> None:
        """
        Upload a small file in a single multipart/form-data request.

        Replaces the file of an existing asset when release_asset_id is
        given, otherwise creates the asset.
        """
        content = await asyncio.to_thread(Path(file_path).read_bytes)

        def build_form() -> aiohttp.FormData:
            form = aiohttp.FormData()
            form.add_field(
                "asset",
                content,
                filename=metadata.filename,
                content_type=metadata.content_type,
            )
            if release_asset_id is None:
                form.add_field("asset_key", asset_key)
                form.add_field("release", str(release_id))
            return form

        if release_asset_id is not None:
            method, endpoint = "PATCH", f"resin/release_asset({release_asset_id})"
        else:
            method, endpoint = "POST", "resin/release_asset"

        response = await self._request(method, endpoint, data=build_form)
        if response.status == 409:
            raise ConflictError(
                f"A release asset for {release_id} - {asset_key} already exists",
                context={"release_id": release_id, "asset_key": asset_key},
            )
        if not response.ok:
            raise api_error(method, endpoint, response)

    @logged_operation(level=logging.DEBUG)
    async def get_release_asset(self, release_id: int, asset_key: str) -> UploadResult:
        """Fetch id and download URL of an uploaded asset."""
        endpoint = release_asset_by_key(release_id, asset_key)
        response = await self._request(
            "GET", endpoint, params={"$select": "id,asset"}
        )
        if not response.ok:
            raise api_error("GET", endpoint, response)
        rows = (self._json(response, "GET", endpoint) or {}).get("d") or []
        if not rows:
            raise ApiError(
                f"Failed to fetch GET {endpoint}: release asset not found after upload",
                status_code=response.status,
            )
        row = rows[0]
        return UploadResult(
            release_asset_id=row["id"],
            download_url=(row.get("asset") or {}).get("href", ""),
        )
