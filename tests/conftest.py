"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any app import, and the
settings cache is cleared so they are the ones in effect.

The GitHub contents API is replaced by FakeGitHub, an in-memory store
mounted on httpx.MockTransport, so the real store client runs against it.
"""

import asyncio
import base64
import hashlib
import json
import os

import httpx
import pytest

os.environ["GITHUB_TOKEN"] = "test-token"
os.environ["GITHUB_USERNAME"] = "test-owner"
os.environ["GITHUB_REPO"] = "test-repo"
os.environ["GITHUB_API_URL"] = "https://api.github.test"
os.environ.setdefault("LOG_LEVEL", "INFO")

# Clear settings cache before any app imports to ensure test env vars are used
from notiva.config import get_settings
get_settings.cache_clear()

from fastapi.testclient import TestClient

from notiva.main import app
from notiva.storage import get_http_client


CONTENTS_PREFIX = "/repos/test-owner/test-repo/contents/"


class FakeGitHub:
    """
    In-memory stand-in for the GitHub contents API.

    Enforces the same revision rules as the real API: overwriting an
    existing file needs its current sha, a stale sha is a 409 and a missing
    one a 422.
    """

    def __init__(self):
        self.blobs = {}
        self.requests = []
        self.put_failures = {}
        self.after_get = {}
        # paths served like files over 1 MB: no inline content
        self.large = set()
        self._writes = 0

    def seed(self, path: str, text: str) -> str:
        return self.seed_bytes(path, text.encode("utf-8"))

    def seed_bytes(self, path: str, content: bytes) -> str:
        sha = self._next_sha(path, content)
        self.blobs[path] = (content, sha)
        return sha

    def text(self, path: str):
        blob = self.blobs.get(path)
        return blob[0].decode("utf-8") if blob else None

    def sha(self, path: str):
        return self.blobs[path][1]

    def puts(self):
        return [path for method, path in self.requests if method == "PUT"]

    def _next_sha(self, path: str, content: bytes) -> str:
        self._writes += 1
        return hashlib.sha1(f"{path}:{self._writes}:".encode("utf-8") + content).hexdigest()

    def handler(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "token test-token"
        assert request.url.path.startswith(CONTENTS_PREFIX)
        path = request.url.path[len(CONTENTS_PREFIX):]
        self.requests.append((request.method, path))

        if request.method == "GET":
            if path not in self.blobs:
                return httpx.Response(404, json={"message": "Not Found"})
            content, sha = self.blobs[path]
            if request.headers["Accept"] == "application/vnd.github.raw":
                return httpx.Response(200, content=content)
            if path in self.large:
                return httpx.Response(200, json={"path": path, "sha": sha, "encoding": "none", "content": ""})
            encoded = base64.encodebytes(content).decode("ascii")  # wrapped like GitHub does
            hook = self.after_get.pop(path, None)
            if hook is not None:
                hook()
            return httpx.Response(200, json={"path": path, "sha": sha, "encoding": "base64", "content": encoded})

        if request.method == "PUT":
            for prefix, (status, message) in self.put_failures.items():
                if path.startswith(prefix):
                    return httpx.Response(status, json={"message": message})

            body = json.loads(request.content)
            sha = body.get("sha")
            existing = self.blobs.get(path)
            if existing is not None and sha is None:
                return httpx.Response(422, json={"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'})
            if existing is not None and sha != existing[1]:
                return httpx.Response(409, json={"message": f"{path} does not match {sha}"})

            content = base64.b64decode(body["content"])
            new_sha = self._next_sha(path, content)
            self.blobs[path] = (content, new_sha)
            return httpx.Response(
                201 if existing is None else 200,
                json={"content": {"path": path, "sha": new_sha}, "commit": {"message": body["message"]}},
            )

        return httpx.Response(405, json={"message": "Method Not Allowed"})


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def client(fake_github):
    """Test client whose store traffic goes to the in-memory fake."""
    mock_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_github.handler))
    app.dependency_overrides[get_http_client] = lambda: mock_client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    asyncio.run(mock_client.aclose())
