"""
Per-document mutual exclusion for signing and workflow transitions.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class DocumentLockRegistry:
    """Hands out one asyncio.Lock per document id.

    Locks are dropped again once no task holds or waits for them, so the
    registry does not grow with the number of documents ever touched.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, document_id: str):
        lock = self._locks.setdefault(document_id, asyncio.Lock())
        self._waiters[document_id] = self._waiters.get(document_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[document_id] -= 1
            if self._waiters[document_id] == 0:
                del self._waiters[document_id]
                del self._locks[document_id]

    def is_locked(self, document_id: str) -> bool:
        lock = self._locks.get(document_id)
        return lock is not None and lock.locked()
