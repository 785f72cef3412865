"""Process-wide mutual exclusion for catalog writes."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog

from resource_catalog.errors import BusyError

logger = structlog.get_logger()


class WriteLock:
    """A single asyncio lock acquired with a bounded wait.

    Failing to acquire it within ``timeout`` seconds raises BusyError and the
    caller must not perform its mutation.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self, action: str = "write") -> AsyncIterator[None]:
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("WriteLock: Timed out waiting for lock", action=action, timeout=self.timeout)
            raise BusyError()
        try:
            yield
        finally:
            self._lock.release()
