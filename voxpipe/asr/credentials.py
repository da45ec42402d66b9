"""Bearer token cache for backends that authenticate with short-lived tokens."""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TokenCache:
    """Caches one bearer token together with its expiry.

    A token is handed out until ``refresh_margin`` seconds before it expires.
    Scoped to a single backend instance.
    """

    def __init__(self, refresh_margin: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def lock(self) -> threading.Lock:
        """Held by callers while they fetch a replacement token."""
        return self._lock

    def get(self) -> Optional[str]:
        """Return the cached token, or None if missing or stale."""
        if self._token is None:
            return None
        if self._clock() >= self._expires_at - self.refresh_margin:
            logger.debug("Cached token is stale")
            return None
        return self._token

    def store(self, token: str, expires_in: float) -> None:
        self._token = token
        self._expires_at = self._clock() + expires_in
        logger.debug(f"Cached token for {expires_in:.0f}s")

    def clear(self) -> None:
        self._token = None
        self._expires_at = 0.0
