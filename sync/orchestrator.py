"""Coordinates sign-in, sync, restore and password prompts through the state machine"""

import logging
import time
from typing import Callable, List, Optional

from dropbox_oauth import DropboxAuthFlow
from dropbox_storage import DropboxRemoteStore
from models.app_data import VersionedAppData
from models.oauth import AuthStatus
from secret_store import SecretStore
from utils.errors import (
    CanceledError,
    CryptoError,
    ErrorEnvelope,
    FilesystemError,
    NotFoundError,
    SafeStorageError,
    SyncError,
    to_error_envelope,
)
from . import state_machine as sm
from .backup import BackupService
from .messages import get_user_friendly_error_message
from .min_duration import MinDurationDispatcher

logger = logging.getLogger(__name__)

SYNC_SUCCESS_MESSAGE = "Data successfully backed up."
RESTORE_SUCCESS_MESSAGE = "Restored successfully"
WRONG_PASSWORD_HINT = "Decryption failed. Wrong password?"
NO_LOCAL_DATA_MESSAGE = "No local data to back up."

StateListener = Callable[[sm.SyncState], None]


class SyncOrchestrator:
    """Owns the sync panel state and runs the user flows against it

    Every flow reads and writes state only through dispatch, which applies
    the pure transition function behind a minimum-duration wrapper. Errors
    never escape the flows; they end up in the Error state (or auth_error
    for sign-in) as an ErrorEnvelope-derived message.
    """

    def __init__(
        self,
        auth: DropboxAuthFlow,
        remote: DropboxRemoteStore,
        passwords: SecretStore,
        backup: BackupService,
        min_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.auth = auth
        self.remote = remote
        self.passwords = passwords
        self.backup = backup
        self.auth_status: AuthStatus = auth.status()
        self.state: sm.SyncState = sm.initial_state(self.auth_status.is_authenticated)
        self.auth_error: Optional[ErrorEnvelope] = None
        self.last_restored: Optional[VersionedAppData] = None
        self._listeners: List[StateListener] = []
        self.dispatch = MinDurationDispatcher(self._apply, min_seconds, clock)

    # State

    def _apply(self, action: sm.Action):
        previous = self.state
        self.state = sm.transition(previous, action)
        if self.state == previous and action.type not in (
            sm.ActionType.SIGN_IN_SUCCESS,
            sm.ActionType.SIGN_OUT,
            sm.ActionType.BACK_TO_IDLE,
        ):
            logger.debug(f"Ignored {action.type.value} in {type(previous).__name__}")
            return
        logger.debug(f"{type(previous).__name__} --{action.type.value}--> {type(self.state).__name__}")
        for listener in list(self._listeners):
            listener(self.state)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a function removing it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def is_busy(self) -> bool:
        return sm.is_busy(self.state)

    @property
    def can_close(self) -> bool:
        return sm.can_close(self.state)

    async def settled(self):
        """Wait for any held result to be applied"""
        await self.dispatch.settled()

    # Authentication

    async def sign_in(self) -> bool:
        """Run the OAuth flow; failures are reported through auth_error

        Returns:
            True if signed in
        """
        self.auth_error = None
        try:
            self.auth_status = await self.auth.start()
        except CanceledError:
            logger.info("Sign-in canceled")
            return False
        except Exception as e:
            if not isinstance(e, SyncError):
                logger.exception("Unexpected error during sign-in")
            self.auth_error = to_error_envelope(e)
            logger.error(f"Sign-in failed: {self.auth_error.code.value}: {self.auth_error.message}")
            return False

        # Tokens minted for a previous account must not be reused
        self.remote.invalidate_token_cache()
        self.dispatch(sm.sign_in_success())
        return True

    def cancel_sign_in(self):
        self.auth.cancel()

    def clear_auth_error(self):
        self.auth_error = None

    def sign_out(self):
        """Forget tokens, profile, cached password and lastSynced"""
        for component in (self.auth, self.remote):
            try:
                component.sign_out()
            except SafeStorageError as e:
                logger.warning(f"Could not clear stored refresh token: {e}")
        self._forget_password()
        try:
            self.backup.clear_last_synced()
        except FilesystemError as e:
            logger.warning(f"Could not clear lastSynced: {e}")
        self.auth_status = AuthStatus(is_authenticated=False)
        self.dispatch(sm.sign_out())

    # Password cache

    def _cached_password(self) -> Optional[str]:
        try:
            return self.passwords.get()
        except SafeStorageError as e:
            logger.warning(f"Cached password unavailable, prompting instead: {e}")
            self._forget_password()
            return None

    def _forget_password(self):
        try:
            self.passwords.clear()
        except SafeStorageError as e:
            logger.warning(f"Could not clear cached password: {e}")

    def _fail(self, error: BaseException, operation: sm.Operation):
        if not isinstance(error, SyncError):
            logger.exception(f"Unexpected error during {operation.value}")
        envelope = to_error_envelope(error)
        logger.error(f"{operation.value.capitalize()} failed: {envelope.code.value}: {envelope.message}")
        self.dispatch(sm.operation_failed(
            get_user_friendly_error_message(envelope.code, operation),
            envelope.code,
            envelope.status,
        ))

    # Sync

    async def request_sync(self):
        """Sync with the cached password, or prompt for one"""
        if not isinstance(self.state, sm.SignedIn):
            logger.info(f"Sync requested while {type(self.state).__name__}, ignoring")
            return

        password = self._cached_password()
        if not password:
            self.dispatch(sm.need_password(sm.Operation.SYNC))
            return

        self.dispatch(sm.start_sync())
        await self._run_sync(password, fresh=False)

    async def _run_sync(self, password: str, fresh: bool):
        try:
            bars = self.backup.load_bars()
            if bars is None:
                # An empty upload would replace the remote backup with nothing
                raise NotFoundError(NO_LOCAL_DATA_MESSAGE)
            await self.backup.sync_to_dropbox(password, bars)
        except CanceledError:
            logger.info("Sync canceled")
            self.dispatch(sm.back_to_idle())
            return
        except CryptoError as e:
            if fresh:
                self._fail(e, sm.Operation.SYNC)
                return
            logger.warning("Encryption with the cached password failed, prompting")
            self._forget_password()
            self.dispatch(sm.need_password(sm.Operation.SYNC))
            return
        except Exception as e:
            self._fail(e, sm.Operation.SYNC)
            return

        if fresh:
            self.dispatch(sm.offer_save_password(password))
        else:
            self.dispatch(sm.operation_success(sm.Operation.SYNC, SYNC_SUCCESS_MESSAGE))

    # Restore

    def request_restore(self):
        """Ask for confirmation before overwriting local data"""
        if not isinstance(self.state, sm.SignedIn):
            logger.info(f"Restore requested while {type(self.state).__name__}, ignoring")
            return
        self.dispatch(sm.start_restore())

    async def confirm_restore(self):
        """Restore with the cached password, or prompt for one"""
        if not isinstance(self.state, sm.ConfirmRestore):
            return

        password = self._cached_password()
        if not password:
            self.dispatch(sm.need_password(sm.Operation.RESTORE))
            return

        self.dispatch(sm.confirm_restore())
        await self._run_restore(password, fresh=False)

    async def _run_restore(self, password: str, fresh: bool):
        try:
            self.last_restored = await self.backup.restore_from_dropbox(password)
        except CanceledError:
            logger.info("Restore canceled")
            self.dispatch(sm.back_to_idle())
            return
        except CryptoError:
            # Wrong password and corrupted backup look the same; ask again either way
            logger.warning("Decryption failed, prompting for the password")
            if not fresh:
                self._forget_password()
            self.dispatch(sm.need_password(sm.Operation.RESTORE, WRONG_PASSWORD_HINT))
            return
        except Exception as e:
            self._fail(e, sm.Operation.RESTORE)
            return

        if fresh:
            self.dispatch(sm.offer_save_password(password))
        else:
            self.dispatch(sm.operation_success(sm.Operation.RESTORE, RESTORE_SUCCESS_MESSAGE))

    # Prompts

    async def submit_password(self, password: str):
        """Answer the password prompt and run the pending operation"""
        if not isinstance(self.state, sm.PasswordPrompt):
            return
        if not password:
            logger.info("Empty password submitted, still waiting")
            return

        purpose = self.state.purpose
        self.dispatch(sm.password_provided(password, purpose))
        if purpose == sm.Operation.SYNC:
            await self._run_sync(password, fresh=True)
        else:
            await self._run_restore(password, fresh=True)

    def confirm_save_password(self):
        """Persist the password just used

        Raises:
            SafeStorageError: If it could not be stored (the state still
                returns to SignedIn)
        """
        if not isinstance(self.state, sm.OfferSavePassword):
            return
        password = self.state.password
        try:
            self.passwords.save(password)
            logger.info("Sync password saved (encrypted)")
        except SafeStorageError:
            self.dispatch(sm.save_password_cancelled())
            raise
        self.dispatch(sm.save_password_confirmed())

    def decline_save_password(self):
        self.dispatch(sm.save_password_cancelled())

    def cancel_operation(self):
        """Abort the running upload or download; the flow settles back to idle"""
        self.remote.cancel_all()

    def back_to_idle(self):
        """Dismiss a result panel, confirmation or prompt"""
        self.dispatch(sm.back_to_idle())

    async def auto_sync(self) -> bool:
        return await self.backup.auto_sync()

    def close(self):
        """Tear down: drop held results and abort everything in flight"""
        self.dispatch.close()
        self.remote.cancel_all()
        self.auth.cancel()
