"""Finite state machine of the cloud sync panel

States and actions are immutable values; transition() is a pure function
so every flow can be checked without I/O. Actions that are not valid for
the current state leave it unchanged.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from utils.errors import ErrorCode


class Operation(str, Enum):
    SYNC = "sync"
    RESTORE = "restore"


# States

@dataclass(frozen=True)
class SignedOut:
    pass


@dataclass(frozen=True)
class SignedIn:
    pass


@dataclass(frozen=True)
class Syncing:
    operation: Operation


@dataclass(frozen=True)
class Success:
    operation: Operation
    message: str


@dataclass(frozen=True)
class Error:
    message: str
    code: Optional[ErrorCode] = None
    status: Optional[int] = None


@dataclass(frozen=True)
class ConfirmRestore:
    pass


@dataclass(frozen=True)
class PasswordPrompt:
    purpose: Operation
    # Shown above the prompt, e.g. after a failed decryption
    hint: Optional[str] = None


@dataclass(frozen=True)
class OfferSavePassword:
    password: str = field(repr=False)


SyncState = Union[
    SignedOut, SignedIn, Syncing, Success, Error, ConfirmRestore, PasswordPrompt, OfferSavePassword
]


# Actions

class ActionType(str, Enum):
    SIGN_IN_SUCCESS = "SIGN_IN_SUCCESS"
    SIGN_OUT = "SIGN_OUT"
    START_SYNC = "START_SYNC"
    START_RESTORE = "START_RESTORE"
    CONFIRM_RESTORE = "CONFIRM_RESTORE"
    NEED_PASSWORD = "NEED_PASSWORD"
    PASSWORD_PROVIDED = "PASSWORD_PROVIDED"
    OPERATION_SUCCESS = "OPERATION_SUCCESS"
    OPERATION_FAILED = "OPERATION_FAILED"
    OFFER_SAVE_PASSWORD = "OFFER_SAVE_PASSWORD"
    SAVE_PASSWORD_CONFIRMED = "SAVE_PASSWORD_CONFIRMED"
    SAVE_PASSWORD_CANCELLED = "SAVE_PASSWORD_CANCELLED"
    BACK_TO_IDLE = "BACK_TO_IDLE"


@dataclass(frozen=True)
class Action:
    type: ActionType
    operation: Optional[Operation] = None
    message: Optional[str] = None
    code: Optional[ErrorCode] = None
    status: Optional[int] = None
    password: Optional[str] = field(default=None, repr=False)


def sign_in_success() -> Action:
    return Action(ActionType.SIGN_IN_SUCCESS)


def sign_out() -> Action:
    return Action(ActionType.SIGN_OUT)


def start_sync() -> Action:
    return Action(ActionType.START_SYNC)


def start_restore() -> Action:
    return Action(ActionType.START_RESTORE)


def confirm_restore() -> Action:
    return Action(ActionType.CONFIRM_RESTORE)


def need_password(purpose: Operation, hint: Optional[str] = None) -> Action:
    return Action(ActionType.NEED_PASSWORD, operation=purpose, message=hint)


def password_provided(password: str, purpose: Operation) -> Action:
    return Action(ActionType.PASSWORD_PROVIDED, operation=purpose, password=password)


def operation_success(operation: Operation, message: str) -> Action:
    return Action(ActionType.OPERATION_SUCCESS, operation=operation, message=message)


def operation_failed(message: str, code: Optional[ErrorCode] = None, status: Optional[int] = None) -> Action:
    return Action(ActionType.OPERATION_FAILED, message=message, code=code, status=status)


def offer_save_password(password: str) -> Action:
    return Action(ActionType.OFFER_SAVE_PASSWORD, password=password)


def save_password_confirmed() -> Action:
    return Action(ActionType.SAVE_PASSWORD_CONFIRMED)


def save_password_cancelled() -> Action:
    return Action(ActionType.SAVE_PASSWORD_CANCELLED)


def back_to_idle() -> Action:
    return Action(ActionType.BACK_TO_IDLE)


def initial_state(is_authenticated: bool) -> SyncState:
    return SignedIn() if is_authenticated else SignedOut()


def transition(state: SyncState, action: Action) -> SyncState:
    """Apply an action to a state

    Args:
        state: Current state
        action: Action to apply

    Returns:
        The next state, or the same state if the action is not allowed here
    """
    kind = action.type

    if kind == ActionType.SIGN_IN_SUCCESS:
        return SignedIn()
    if kind == ActionType.SIGN_OUT:
        return SignedOut()

    if kind == ActionType.START_SYNC and isinstance(state, SignedIn):
        return Syncing(Operation.SYNC)
    if kind == ActionType.START_RESTORE and isinstance(state, SignedIn):
        return ConfirmRestore()
    if kind == ActionType.CONFIRM_RESTORE and isinstance(state, ConfirmRestore):
        return Syncing(Operation.RESTORE)

    if kind == ActionType.NEED_PASSWORD and isinstance(state, (SignedIn, Syncing, ConfirmRestore, PasswordPrompt)):
        return PasswordPrompt(action.operation or Operation.SYNC, action.message)
    if kind == ActionType.PASSWORD_PROVIDED and isinstance(state, PasswordPrompt):
        return Syncing(action.operation or state.purpose)

    if isinstance(state, Syncing):
        if kind == ActionType.OPERATION_SUCCESS:
            return Success(action.operation or state.operation, action.message or "")
        if kind == ActionType.OPERATION_FAILED:
            return Error(action.message or "", action.code, action.status)
        if kind == ActionType.OFFER_SAVE_PASSWORD and action.password:
            return OfferSavePassword(action.password)

    if kind in (ActionType.SAVE_PASSWORD_CONFIRMED, ActionType.SAVE_PASSWORD_CANCELLED) and isinstance(
        state, OfferSavePassword
    ):
        return SignedIn()

    if kind == ActionType.BACK_TO_IDLE:
        # Idle is SignedIn for every state except SignedOut itself
        return state if isinstance(state, SignedOut) else SignedIn()

    return state


def is_busy(state: SyncState) -> bool:
    """True while an operation runs or awaits password input or a save decision"""
    return isinstance(state, (Syncing, PasswordPrompt, OfferSavePassword))


def can_close(state: SyncState) -> bool:
    return not is_busy(state)
