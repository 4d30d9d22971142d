"""State locking utilities for single-writer, read-modify-write updates."""

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StateLock:
    """Named async lock for exclusive access to a piece of shared state."""

    def __init__(self, name: str):
        """Initialize state lock."""
        self.name = name
        self._lock = asyncio.Lock()
        logger.debug(f"State lock '{name}' created")

    @asynccontextmanager
    async def locked(self):
        """Context manager for exclusive access."""
        async with self._lock:
            logger.debug(f"State lock '{self.name}' acquired")
            yield

    def is_locked(self) -> bool:
        return self._lock.locked()


class VersionedState(Generic[T]):
    """
    A value that is only ever replaced whole.

    Writers go through ``update``: read the full value, compute a new one and
    write it back, all under one lock, bumping the version. Readers always get
    a deep copy, so nobody can observe or make a field-level change outside
    the update protocol.
    """

    def __init__(self, name: str, initial: T):
        self.name = name
        self._lock = StateLock(name)
        self._value: T = initial
        self._version = 0

    def read(self) -> T:
        return copy.deepcopy(self._value)

    async def update(self, fn: Callable[[T], T]) -> T:
        """
        Replace the value with ``fn(copy_of_current)``.

        If ``fn`` raises, the stored value and version are untouched and the
        exception propagates to the caller.
        """
        async with self._lock.locked():
            new_value = fn(copy.deepcopy(self._value))
            self._value = new_value
            self._version += 1
            logger.debug(f"State '{self.name}' updated to version {self._version}")
            return copy.deepcopy(new_value)
