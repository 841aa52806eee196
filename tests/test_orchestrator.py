"""End-to-end tests of the sync flows against a fake Dropbox."""

from __future__ import annotations

import asyncio
import json
from typing import List

import pytest

from backup_crypto import encrypt_data
from dropbox_oauth import DropboxAuthFlow
from secret_store import MemorySecretStore
from sync import APPDATA_FILE_NAME, SyncOrchestrator
from sync import state_machine as sm
from utils.errors import ErrorCode, SafeStorageError


class StaticCallbackServer:
    redirect_uri = "http://127.0.0.1:5999/callback"

    async def start(self) -> None:
        pass

    async def wait_for_code(self, cancel=None, timeout=None) -> str:
        return "auth-code"

    async def stop(self) -> None:
        pass


@pytest.fixture
def auth(refresh_tokens, profile, fake_dropbox) -> DropboxAuthFlow:
    return DropboxAuthFlow(
        refresh_tokens,
        profile,
        app_key="test-app-key",
        transport=fake_dropbox.transport,
        open_browser=lambda url: True,
        server_factory=StaticCallbackServer,
    )


@pytest.fixture
def orchestrator(auth, remote, passwords, backup) -> SyncOrchestrator:
    return SyncOrchestrator(auth, remote, passwords, backup, min_seconds=0)


@pytest.fixture
def saved_bars(app_data, valid_bar) -> None:
    app_data.save_partial_data({"bars": [valid_bar]})


def upload_backup(fake_dropbox, bars: list, password: str) -> None:
    payload = {"version": 1, "lastSynced": "2024-05-01T10:00:00.000Z", "bars": bars}
    fake_dropbox.files[f"/{APPDATA_FILE_NAME}"] = encrypt_data(json.dumps(payload), password).encode("utf-8")


class TestSignIn:
    """Tests for sign-in and sign-out."""

    def test_initial_state_follows_stored_token(self, orchestrator, auth, remote, passwords, backup) -> None:
        assert orchestrator.state == sm.SignedIn()

        auth.refresh_tokens.clear()
        fresh = SyncOrchestrator(auth, remote, passwords, backup)
        assert fresh.state == sm.SignedOut()

    @pytest.mark.asyncio
    async def test_sign_in(self, orchestrator, refresh_tokens) -> None:
        refresh_tokens.clear()
        orchestrator.sign_out()

        assert await orchestrator.sign_in() is True
        assert orchestrator.state == sm.SignedIn()
        assert orchestrator.auth_status.user.email == "ada@example.com"
        assert refresh_tokens.get() == "refresh-from-code"

    @pytest.mark.asyncio
    async def test_sign_in_failure_sets_auth_error(self, orchestrator, fake_dropbox) -> None:
        orchestrator.sign_out()
        fake_dropbox.failures["/oauth2/token"] = 400

        assert await orchestrator.sign_in() is False
        assert orchestrator.state == sm.SignedOut()
        assert orchestrator.auth_error.code == ErrorCode.OAUTH_CONFIG
        orchestrator.clear_auth_error()
        assert orchestrator.auth_error is None

    @pytest.mark.asyncio
    async def test_sign_out_forgets_everything(self, orchestrator, passwords, refresh_tokens, app_data, saved_bars) -> None:
        passwords.save("pw")
        await orchestrator.request_sync()
        orchestrator.back_to_idle()
        assert app_data.load_data()["lastSynced"]

        orchestrator.sign_out()

        assert orchestrator.state == sm.SignedOut()
        assert passwords.get() is None
        assert refresh_tokens.get() is None
        assert app_data.load_data()["lastSynced"] is None

    def test_sign_out_survives_unavailable_keychain(self, auth, remote, backup) -> None:
        passwords = MemorySecretStore(available=False)
        orchestrator = SyncOrchestrator(auth, remote, passwords, backup, min_seconds=0)
        orchestrator.sign_out()
        assert orchestrator.state == sm.SignedOut()


class TestSync:
    """Tests for the sync flow."""

    @pytest.mark.asyncio
    async def test_cached_password_sync(self, orchestrator, passwords, app_data, fake_dropbox, valid_bar) -> None:
        passwords.save("pw")
        app_data.save_partial_data({"bars": [valid_bar]})
        states: List[sm.SyncState] = []
        orchestrator.subscribe(states.append)

        await orchestrator.request_sync()

        assert states == [sm.Syncing(sm.Operation.SYNC), sm.Success(sm.Operation.SYNC, "Data successfully backed up.")]
        assert f"/{APPDATA_FILE_NAME}" in fake_dropbox.files

    @pytest.mark.asyncio
    async def test_first_sync_prompts_and_offers_to_save(self, orchestrator, passwords, saved_bars) -> None:
        await orchestrator.request_sync()
        assert orchestrator.state == sm.PasswordPrompt(sm.Operation.SYNC)
        assert orchestrator.is_busy
        assert not orchestrator.can_close

        await orchestrator.submit_password("pw")
        assert orchestrator.state == sm.OfferSavePassword("pw")

        orchestrator.confirm_save_password()
        assert orchestrator.state == sm.SignedIn()
        assert passwords.get() == "pw"

    @pytest.mark.asyncio
    async def test_declined_save_keeps_nothing(self, orchestrator, passwords, saved_bars) -> None:
        await orchestrator.request_sync()
        await orchestrator.submit_password("pw")
        orchestrator.decline_save_password()

        assert orchestrator.state == sm.SignedIn()
        assert passwords.get() is None

    @pytest.mark.asyncio
    async def test_save_failure_returns_to_idle(self, orchestrator, passwords, saved_bars) -> None:
        await orchestrator.request_sync()
        await orchestrator.submit_password("pw")
        passwords.available = False

        with pytest.raises(SafeStorageError):
            orchestrator.confirm_save_password()
        assert orchestrator.state == sm.SignedIn()

    @pytest.mark.asyncio
    async def test_empty_password_keeps_prompt(self, orchestrator, fake_dropbox) -> None:
        await orchestrator.request_sync()
        await orchestrator.submit_password("")
        assert orchestrator.state == sm.PasswordPrompt(sm.Operation.SYNC)
        assert fake_dropbox.requests == []

    @pytest.mark.asyncio
    async def test_dropbox_failure_shows_error(self, orchestrator, passwords, fake_dropbox, saved_bars) -> None:
        passwords.save("pw")
        fake_dropbox.failures["/2/files/upload"] = 500

        await orchestrator.request_sync()

        assert orchestrator.state == sm.Error("A Dropbox error occurred.", ErrorCode.DROPBOX_API, 500)
        orchestrator.back_to_idle()
        assert orchestrator.state == sm.SignedIn()

    @pytest.mark.asyncio
    async def test_expired_session(self, orchestrator, passwords, fake_dropbox, saved_bars) -> None:
        passwords.save("pw")
        fake_dropbox.failures["/oauth2/token"] = 401

        await orchestrator.request_sync()

        assert isinstance(orchestrator.state, sm.Error)
        assert orchestrator.state.code == ErrorCode.TOKEN_REFRESH_FAILED

    @pytest.mark.asyncio
    async def test_unreadable_cached_password_prompts(self, orchestrator, passwords) -> None:
        passwords.save("pw")
        passwords.corrupt()

        await orchestrator.request_sync()
        assert orchestrator.state == sm.PasswordPrompt(sm.Operation.SYNC)

    @pytest.mark.asyncio
    async def test_cancel_returns_to_idle(self, orchestrator, passwords, fake_dropbox, saved_bars) -> None:
        passwords.save("pw")
        await orchestrator.remote.get_access_token()
        fake_dropbox.hold_uploads()

        flow = asyncio.ensure_future(orchestrator.request_sync())
        await asyncio.wait_for(fake_dropbox.upload_entered.wait(), 1)
        assert orchestrator.state == sm.Syncing(sm.Operation.SYNC)

        orchestrator.cancel_operation()
        await flow

        assert orchestrator.state == sm.SignedIn()
        assert f"/{APPDATA_FILE_NAME}" not in fake_dropbox.files

    @pytest.mark.asyncio
    async def test_sync_ignored_while_signed_out(self, orchestrator, fake_dropbox) -> None:
        orchestrator.sign_out()
        await orchestrator.request_sync()
        assert orchestrator.state == sm.SignedOut()
        assert fake_dropbox.requests == []

    @pytest.mark.asyncio
    async def test_missing_local_data_keeps_remote_backup(self, orchestrator, passwords, fake_dropbox, valid_bar) -> None:
        passwords.save("pw")
        upload_backup(fake_dropbox, [valid_bar], "pw")
        remote_before = fake_dropbox.files[f"/{APPDATA_FILE_NAME}"]

        await orchestrator.request_sync()
        await orchestrator.settled()

        assert orchestrator.state == sm.Error("No local data to back up.", ErrorCode.NOT_FOUND, None)
        assert fake_dropbox.files[f"/{APPDATA_FILE_NAME}"] == remote_before
        assert fake_dropbox.paths_requested("/2/files/upload") == []


class TestRestore:
    """Tests for the restore flow."""

    @pytest.mark.asyncio
    async def test_confirm_then_restore_with_cached_password(self, orchestrator, passwords, app_data, fake_dropbox, valid_bar) -> None:
        passwords.save("pw")
        upload_backup(fake_dropbox, [valid_bar], "pw")

        orchestrator.request_restore()
        assert orchestrator.state == sm.ConfirmRestore()
        await orchestrator.confirm_restore()

        assert orchestrator.state == sm.Success(sm.Operation.RESTORE, "Restored successfully")
        assert [bar.id for bar in orchestrator.last_restored.bars] == ["bar-1"]
        assert app_data.load_data()["bars"] == [valid_bar]

    @pytest.mark.asyncio
    async def test_declining_confirmation(self, orchestrator, fake_dropbox) -> None:
        orchestrator.request_restore()
        orchestrator.back_to_idle()
        assert orchestrator.state == sm.SignedIn()
        assert fake_dropbox.requests == []

    @pytest.mark.asyncio
    async def test_wrong_cached_password_clears_it_and_prompts(self, orchestrator, passwords, fake_dropbox, valid_bar) -> None:
        passwords.save("stale")
        upload_backup(fake_dropbox, [valid_bar], "pw")

        orchestrator.request_restore()
        await orchestrator.confirm_restore()

        assert orchestrator.state == sm.PasswordPrompt(sm.Operation.RESTORE, "Decryption failed. Wrong password?")
        assert passwords.get() is None

        await orchestrator.submit_password("pw")
        assert orchestrator.state == sm.OfferSavePassword("pw")

    @pytest.mark.asyncio
    async def test_wrong_fresh_password_prompts_again(self, orchestrator, fake_dropbox, valid_bar) -> None:
        upload_backup(fake_dropbox, [valid_bar], "pw")

        orchestrator.request_restore()
        await orchestrator.confirm_restore()
        assert orchestrator.state == sm.PasswordPrompt(sm.Operation.RESTORE)

        await orchestrator.submit_password("nope")
        assert orchestrator.state == sm.PasswordPrompt(sm.Operation.RESTORE, "Decryption failed. Wrong password?")

    @pytest.mark.asyncio
    async def test_no_backup(self, orchestrator, passwords) -> None:
        passwords.save("pw")
        orchestrator.request_restore()
        await orchestrator.confirm_restore()

        assert orchestrator.state == sm.Error("No backup found in Dropbox.", ErrorCode.NOT_FOUND, None)


class TestMinimumDuration:
    """Tests for the visible syncing state."""

    @pytest.mark.asyncio
    async def test_fast_result_waits_for_minimum(self, auth, remote, passwords, backup, saved_bars) -> None:
        passwords.save("pw")
        orchestrator = SyncOrchestrator(auth, remote, passwords, backup, min_seconds=0.2)

        await orchestrator.request_sync()
        assert orchestrator.state == sm.Syncing(sm.Operation.SYNC)

        await orchestrator.settled()
        assert orchestrator.state == sm.Success(sm.Operation.SYNC, "Data successfully backed up.")

    @pytest.mark.asyncio
    async def test_close_drops_pending_result(self, auth, remote, passwords, backup, saved_bars) -> None:
        passwords.save("pw")
        orchestrator = SyncOrchestrator(auth, remote, passwords, backup, min_seconds=0.2)

        await orchestrator.request_sync()
        orchestrator.close()
        await asyncio.sleep(0.3)
        assert orchestrator.state == sm.Syncing(sm.Operation.SYNC)


@pytest.mark.asyncio
async def test_auto_sync_delegates(orchestrator, passwords, app_data, valid_bar) -> None:
    assert await orchestrator.auto_sync() is False
    passwords.save("pw")
    app_data.save_partial_data({"bars": [valid_bar]})
    assert await orchestrator.auto_sync() is True
