"""Shared test fixtures for goal tracker sync."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import parse_qsl

# Ensure the repository root is importable when running pytest from any CWD.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import httpx
import pytest

from dropbox_storage import DropboxRemoteStore
from secret_store import MemorySecretStore
from sync import BackupService
from utils.sounds import SoundLibrary
from utils.storage import AppDataStore, ProfileStorage


class FakeDropbox:
    """In-memory Dropbox app folder served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.requests: List[httpx.Request] = []
        self.token_requests: List[dict] = []
        self.failures: Dict[str, int] = {}
        self.failing_uploads: Dict[str, int] = {}
        self.code_refresh_token: Optional[str] = "refresh-from-code"
        self.account = {
            "email": "ada@example.com",
            "name": {"display_name": "Ada Lovelace"},
            "profile_photo_url": "https://example.com/ada.png",
        }
        self.upload_entered: Optional[asyncio.Event] = None
        self._upload_release: Optional[asyncio.Event] = None
        self.transport = httpx.MockTransport(self.handler)

    def hold_uploads(self) -> None:
        """Park every upload inside the handler until release_uploads()."""
        self.upload_entered = asyncio.Event()
        self._upload_release = asyncio.Event()

    def release_uploads(self) -> None:
        if self._upload_release is not None:
            self._upload_release.set()

    @property
    def token_count(self) -> int:
        return len(self.token_requests)

    def paths_requested(self, endpoint: str) -> List[str]:
        return [r.url.path for r in self.requests if r.url.path == endpoint]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path

        if endpoint in self.failures:
            return httpx.Response(self.failures[endpoint], json={"error_summary": "internal_error/"})

        if endpoint == "/oauth2/token":
            return self._token(dict(parse_qsl(request.content.decode("utf-8"))))
        if endpoint == "/2/users/get_current_account":
            return httpx.Response(200, json=self.account)
        if endpoint == "/2/files/get_metadata":
            path = json.loads(request.content)["path"]
            if path not in self.files:
                return self._not_found()
            return httpx.Response(200, json={".tag": "file", "name": path.lstrip("/")})
        if endpoint == "/2/files/upload":
            arg = json.loads(request.headers["Dropbox-API-Arg"])
            if arg["path"] in self.failing_uploads:
                return httpx.Response(self.failing_uploads[arg["path"]], json={"error_summary": "internal_error/"})
            if self._upload_release is not None:
                self.upload_entered.set()
                await self._upload_release.wait()
            self.files[arg["path"]] = request.content
            return httpx.Response(200, json={"name": arg["path"].lstrip("/"), "size": len(request.content)})
        if endpoint == "/2/files/download":
            path = json.loads(request.headers["Dropbox-API-Arg"])["path"]
            if path not in self.files:
                return self._not_found()
            return httpx.Response(200, content=self.files[path])
        if endpoint == "/2/files/delete_v2":
            path = json.loads(request.content)["path"]
            if self.files.pop(path, None) is None:
                return self._not_found()
            return httpx.Response(200, json={"metadata": {"name": path.lstrip("/")}})

        return httpx.Response(404, text="unknown endpoint")

    def _token(self, form: dict) -> httpx.Response:
        self.token_requests.append(form)
        issued = f"access-{len(self.token_requests)}"
        if form.get("grant_type") == "authorization_code":
            body = {"access_token": issued, "token_type": "bearer", "expires_in": 14400}
            if self.code_refresh_token:
                body["refresh_token"] = self.code_refresh_token
            return httpx.Response(200, json=body)
        if form.get("grant_type") == "refresh_token":
            return httpx.Response(200, json={"access_token": issued, "token_type": "bearer", "expires_in": 14400})
        return httpx.Response(400, json={"error": "unsupported_grant_type"})

    @staticmethod
    def _not_found() -> httpx.Response:
        return httpx.Response(409, json={"error_summary": "path/not_found/..", "error": {".tag": "path"}})


@pytest.fixture
def fake_dropbox() -> FakeDropbox:
    return FakeDropbox()


@pytest.fixture
def refresh_tokens() -> MemorySecretStore:
    """Secret store already holding a refresh token (signed in)."""
    return MemorySecretStore(secret="refresh-1")


@pytest.fixture
def passwords() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "goal-tracker"
    directory.mkdir()
    return directory


@pytest.fixture
def app_data(data_dir: Path) -> AppDataStore:
    return AppDataStore(str(data_dir / "my-data.json"))


@pytest.fixture
def profile(data_dir: Path) -> ProfileStorage:
    return ProfileStorage(str(data_dir / "dropbox-profile.json"))


@pytest.fixture
def sound_library(data_dir: Path) -> SoundLibrary:
    return SoundLibrary(str(data_dir / "sounds"))


@pytest.fixture
def remote(refresh_tokens: MemorySecretStore, fake_dropbox: FakeDropbox) -> DropboxRemoteStore:
    return DropboxRemoteStore(refresh_tokens, app_key="test-app-key", transport=fake_dropbox.transport)


@pytest.fixture
def backup(
    remote: DropboxRemoteStore,
    passwords: MemorySecretStore,
    app_data: AppDataStore,
    sound_library: SoundLibrary,
) -> BackupService:
    return BackupService(remote, passwords, app_data, sound_library)


@pytest.fixture
def valid_bar() -> dict:
    return {
        "id": "bar-1",
        "title": "Read books",
        "current": 3,
        "max": 12,
        "unit": "books",
        "incrementDelta": 1,
        "completedColor": "#22c55e",
        "remainingColor": "#e5e7eb",
    }
