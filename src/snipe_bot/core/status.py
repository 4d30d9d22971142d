"""Single human-readable status line shared by all trade attempts."""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Tuple

from .state_lock import StateLock

logger = logging.getLogger(__name__)


class StatusBoard:
    """
    Holds the one status message shown to the operator.

    Every write replaces the whole message under a lock, so two attempts
    running at once can only ever show one complete message or the other.
    """

    def __init__(self, recent_size: int = 20):
        self._lock = StateLock("status")
        self._message = ""
        self._updated_at: datetime = datetime.now(timezone.utc)
        self._recent: Deque[Tuple[datetime, str]] = deque(maxlen=recent_size)

    @property
    def message(self) -> str:
        return self._message

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    async def post(self, message: str) -> None:
        async with self._lock.locked():
            now = datetime.now(timezone.utc)
            self._message = message
            self._updated_at = now
            self._recent.append((now, message))
        logger.info(f"Status: {message}")

    def recent(self) -> List[Tuple[datetime, str]]:
        return list(self._recent)
