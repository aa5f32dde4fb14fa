"""
Reader/writer lock guarding the arbiter's service table.

Read-only queries take ``shared()`` and may run concurrently with each other.
The poll cycle and every mutating operation take ``exclusive()`` for their
whole duration, including the device HTTP calls made while holding it.

Usage
-----
    lock = StatusLock()

    async with lock.shared():
        ...  # read state

    async with lock.exclusive():
        ...  # mutate state, call devices

The lock is not re-entrant: code holding ``exclusive()`` must not call
anything that takes ``shared()``.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class StatusLock:
    def __init__(self) -> None:
        # Held by a writer for its full duration, and by readers only while
        # they register, so a waiting writer blocks newly arriving readers.
        self._writer_lock = asyncio.Lock()
        self._readers = 0
        self._no_readers = asyncio.Event()
        self._no_readers.set()

    @asynccontextmanager
    async def shared(self) -> AsyncIterator[None]:
        async with self._writer_lock:
            self._readers += 1
            self._no_readers.clear()
        try:
            yield
        finally:
            self._readers -= 1
            if self._readers == 0:
                self._no_readers.set()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        async with self._writer_lock:
            await self._no_readers.wait()
            yield
