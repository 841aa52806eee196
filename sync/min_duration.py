"""Dispatch middleware keeping the syncing state visible for a minimum time"""

import asyncio
import logging
import time
from typing import Callable, Optional

import settings
from .state_machine import Action, ActionType

logger = logging.getLogger(__name__)

START_ACTIONS = frozenset({
    ActionType.START_SYNC,
    ActionType.CONFIRM_RESTORE,
    ActionType.PASSWORD_PROVIDED,
})

RESULT_ACTIONS = frozenset({
    ActionType.OPERATION_SUCCESS,
    ActionType.OPERATION_FAILED,
    ActionType.OFFER_SAVE_PASSWORD,
})

# These drop a held result instead of letting it land later
CANCELLING_ACTIONS = frozenset({
    ActionType.BACK_TO_IDLE,
    ActionType.SIGN_OUT,
})


class MinDurationDispatcher:
    """Wraps a dispatch function, holding result actions on a timer

    A result action arriving less than min_seconds after the last start
    action is applied once the interval has elapsed. The wrapped reducer is
    untouched; only the moment the result is handed to it changes.
    """

    def __init__(
        self,
        base_dispatch: Callable[[Action], None],
        min_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.base_dispatch = base_dispatch
        self.min_seconds = settings.MIN_SYNCING_SECONDS if min_seconds is None else min_seconds
        self.clock = clock
        self._started_at: Optional[float] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def has_pending(self) -> bool:
        return self._timer is not None

    def __call__(self, action: Action):
        if action.type in START_ACTIONS:
            self._started_at = self.clock()
            self._clear_timer()
            self.base_dispatch(action)
            return

        if action.type in RESULT_ACTIONS:
            if self._started_at is not None:
                remaining = self.min_seconds - (self.clock() - self._started_at)
                if remaining > 0:
                    self._clear_timer()
                    loop = asyncio.get_running_loop()
                    self._pending = loop.create_future()
                    self._timer = loop.call_later(remaining, self._fire, action)
                    logger.debug(f"Holding {action.type.value} for {remaining:.3f}s")
                    return
                self._started_at = None
            self.base_dispatch(action)
            return

        if action.type in CANCELLING_ACTIONS:
            self._clear_timer()
            self._started_at = None

        self.base_dispatch(action)

    def _fire(self, action: Action):
        self._timer = None
        self._started_at = None
        try:
            self.base_dispatch(action)
        finally:
            self._resolve_pending()

    def _resolve_pending(self):
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(None)
        self._pending = None

    def _clear_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug("Dropped held result action")
        self._resolve_pending()

    async def settled(self):
        """Wait until no result action is held"""
        while self._pending is not None:
            await asyncio.shield(self._pending)

    def close(self):
        """Drop any held result action"""
        self._clear_timer()
        self._started_at = None
