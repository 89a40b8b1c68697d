"""
Best-effort, fire-and-forget delivery of signer notifications.
"""
import asyncio
import logging
from typing import Set

from ..stores.base import NotificationSink
from ..core.logging_config import mask_token

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Schedules sink calls as background tasks.

    A slow or failing sink never delays or fails the workflow transition
    that triggered it. Failures are logged and not retried.
    """

    def __init__(self, sink: NotificationSink):
        self.sink = sink
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, signer_email: str, token: str) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(signer_email, token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, signer_email: str, token: str) -> None:
        try:
            await self.sink.notify(signer_email, token)
        except Exception as e:
            logger.error(
                f"Notification to {signer_email} (token {mask_token(token)}) failed: {e}",
                exc_info=True
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every notification scheduled so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
