"""
Client for the remote blob store (GitHub REST contents API).

Blobs are whole files addressed by repository path. Fetching a blob returns
its content together with a revision token (the git blob sha); overwriting an
existing blob requires the revision it was last seen at. The client never
retries and never re-fetches on conflict, callers decide what to do.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import Depends, Request

from notiva.config import Settings, get_settings
from notiva.exceptions import ConfigurationError, ConflictError, StoreError
from notiva.metrics import record_store_request

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github.v3+json"
GITHUB_ACCEPT_RAW = "application/vnd.github.raw"


# =============================================================================
# Storage Layout
# =============================================================================

def inbox_path(username: str) -> str:
    return f"messages/{username}/inbox.txt"


def log_path(username: str) -> str:
    return f"logs/{username}/messages.log"


def probe_path(epoch_ms: int) -> str:
    return f"test/connection_test_{epoch_ms}.txt"


# =============================================================================
# Blob Store Client
# =============================================================================

@dataclass(frozen=True)
class Blob:
    """Content of a stored file and the revision it was read at."""
    content: bytes
    revision: str

    def text(self) -> str:
        try:
            return self.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StoreError(f"Stored blob is not valid UTF-8: {e}") from e


class GitHubContentStore:
    """
    Reads and writes blobs in a GitHub repository.

    Args:
        settings: Application settings (repository coordinates and token)
        client: Shared async HTTP client
    """

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    def blob_url(self, path: str) -> str:
        encoded = "/".join(quote(segment, safe="") for segment in path.split("/"))
        return f"{self.settings.repo_api_base}/contents/{encoded}"

    def _headers(self, accept: str = GITHUB_ACCEPT) -> dict:
        # Checked per call, before any request goes out
        if not self.settings.GITHUB_TOKEN:
            raise ConfigurationError("GitHub token not configured on server")
        return {
            "Authorization": f"token {self.settings.GITHUB_TOKEN}",
            "Accept": accept,
        }

    async def _send(self, method: str, path: str, accept: str = GITHUB_ACCEPT, **kwargs) -> httpx.Response:
        headers = self._headers(accept)
        logger.debug(f"Store request: {method} {path}")
        try:
            response = await self.client.request(method, self.blob_url(path), headers=headers, **kwargs)
        except httpx.HTTPError as e:
            record_store_request(method, "error")
            logger.error(f"Store request failed: {method} {path}: {e}")
            raise StoreError(f"GitHub request failed: {e}") from e

        record_store_request(method, str(response.status_code))
        logger.debug(f"Store response: {method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.text or response.reason_phrase

    @staticmethod
    def _json_object(response: httpx.Response, path: str) -> dict:
        """Decode a successful response body, which must be a JSON object."""
        try:
            data = response.json()
        except ValueError as e:
            raise StoreError(f"Unexpected response from GitHub for {path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Unexpected response from GitHub for {path}: not a file")
        return data

    async def _fetch_raw(self, path: str) -> bytes:
        """
        Fetch the raw bytes of a blob.

        The JSON contents endpoint leaves "content" empty for files over 1 MB
        (encoding "none"); the raw media type returns them in full.
        """
        response = await self._send("GET", path, accept=GITHUB_ACCEPT_RAW)
        if not response.is_success:
            message = self._error_message(response)
            logger.error(f"Failed to fetch raw {path}: {response.status_code} {message}")
            raise StoreError(f"GitHub API Error: {message}")
        return response.content

    async def fetch(self, path: str) -> Optional[Blob]:
        """
        Fetch a blob and its revision token.

        Args:
            path: Repository path of the blob

        Returns:
            Blob if it exists, None if the store reports 404

        Raises:
            ConfigurationError: token not configured
            StoreError: any other remote failure, or a response that is not a file
        """
        response = await self._send("GET", path)

        if response.status_code == 404:
            logger.debug(f"Blob not found: {path}")
            return None
        if not response.is_success:
            message = self._error_message(response)
            logger.error(f"Failed to fetch {path}: {response.status_code} {message}")
            raise StoreError(f"GitHub API Error: {message}")

        data = self._json_object(response, path)
        revision = data.get("sha")
        if data.get("type", "file") != "file" or not isinstance(revision, str):
            raise StoreError(f"Unexpected response from GitHub for {path}: not a file")

        encoding = data.get("encoding", "base64")
        if encoding == "base64":
            try:
                content = base64.b64decode(data.get("content") or "")
            except ValueError as e:
                raise StoreError(f"Unexpected response from GitHub for {path}: {e}") from e
        else:
            logger.info(f"Blob {path} not inlined (encoding {encoding!r}), fetching raw")
            content = await self._fetch_raw(path)

        logger.info(f"Fetched blob {path} ({len(content)} bytes, revision {revision[:8]})")
        return Blob(content=content, revision=revision)

    async def put(
        self,
        path: str,
        content: bytes,
        commit_message: str,
        revision: Optional[str] = None
    ) -> str:
        """
        Create or overwrite a blob, conditional on its last seen revision.

        Args:
            path: Repository path of the blob
            content: Full new content of the blob
            commit_message: Commit message recorded by the store
            revision: Revision the caller last read; None to create a new blob

        Returns:
            Revision token of the written blob

        Raises:
            ConfigurationError: token not configured
            ConflictError: blob changed (or appeared) since `revision`
            StoreError: any other remote failure
        """
        body = {
            "message": commit_message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if revision:
            body["sha"] = revision

        response = await self._send("PUT", path, json=body)

        if response.status_code == 409:
            message = self._error_message(response)
            logger.warning(f"Revision conflict writing {path}: {message}")
            raise ConflictError(f"GitHub API Error: {message}")
        if response.status_code == 422 and revision is None:
            message = self._error_message(response)
            if '"sha"' in message:
                logger.warning(f"Blob {path} already exists, write needs a revision")
                raise ConflictError(f"GitHub API Error: {message}")
        if not response.is_success:
            message = self._error_message(response)
            logger.error(f"Failed to write {path}: {response.status_code} {message}")
            raise StoreError(f"GitHub API Error: {message}")

        written = self._json_object(response, path).get("content")
        new_revision = written.get("sha", "") if isinstance(written, dict) else ""
        logger.info(f"Wrote blob {path} ({len(content)} bytes): {commit_message}")
        return new_revision


# =============================================================================
# Dependencies
# =============================================================================

def create_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)


def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency returning the process-wide HTTP client created at startup.
    """
    return request.app.state.http_client


def get_store(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client)
) -> GitHubContentStore:
    return GitHubContentStore(settings, client)
