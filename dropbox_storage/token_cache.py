"""In-memory access token cache"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenCacheEntry:
    access_token: str
    expires_at: float


class AccessTokenCache:
    """Holds at most one access token and its expiry

    A cached token is only handed out while more than refresh_buffer seconds
    of validity remain; past that point get() reports a miss so the caller
    refreshes. Owned by a single DropboxRemoteStore, never shared globally.
    """

    def __init__(
        self,
        refresh_buffer: Optional[float] = None,
        max_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.refresh_buffer = settings.ACCESS_TOKEN_REFRESH_BUFFER if refresh_buffer is None else refresh_buffer
        self.max_ttl = settings.ACCESS_TOKEN_MAX_TTL if max_ttl is None else max_ttl
        self.clock = clock
        self._entry: Optional[TokenCacheEntry] = None

    def get(self, now: Optional[float] = None) -> Optional[str]:
        """Return the cached token if it is still comfortably valid"""
        entry = self._entry
        if entry is None:
            return None
        if (self.clock() if now is None else now) >= entry.expires_at - self.refresh_buffer:
            logger.debug("Cached access token is stale")
            return None
        return entry.access_token

    def store(
        self,
        access_token: str,
        expires_in: Optional[float] = None,
        now: Optional[float] = None,
    ) -> TokenCacheEntry:
        """Cache a freshly minted token

        Args:
            access_token: The token
            expires_in: Provider-reported lifetime; capped at max_ttl, which is
                also used when the provider reports nothing
            now: Current time (defaults to the clock)
        """
        ttl = self.max_ttl if expires_in is None else min(expires_in, self.max_ttl)
        self._entry = TokenCacheEntry(access_token=access_token, expires_at=(self.clock() if now is None else now) + ttl)
        logger.debug(f"Cached access token for {ttl} seconds (not logging token)")
        return self._entry

    def invalidate(self):
        if self._entry is not None:
            logger.debug("Access token cache invalidated")
        self._entry = None
