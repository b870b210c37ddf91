"""Graceful shutdown and cancellation of in-flight transcodes."""

import asyncio
import signal
from typing import Optional, Set

from ..utils.logging import get_logger

logger = get_logger(__name__)


class ShutdownHandler:
    """Own the cancellation signal shared by every running transcode."""

    def __init__(self):
        self._shutdown_event: Optional[asyncio.Event] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def cancel_event(self) -> asyncio.Event:
        """Event passed to transcodes; set once shutdown is requested."""
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
        return self._shutdown_event

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_event is not None and self._shutdown_event.is_set()

    def register_task(self, task: asyncio.Task) -> None:
        """Register a task to be cancelled on shutdown."""
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_for_shutdown(self) -> None:
        """Wait for shutdown signal."""
        await self.cancel_event.wait()

    def trigger_shutdown(self) -> None:
        """Trigger shutdown; running subprocesses are stopped."""
        logger.info("Triggering graceful shutdown")
        self.cancel_event.set()

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Trigger shutdown on SIGINT/SIGTERM where the loop supports it."""
        loop = loop or asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.trigger_shutdown)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler
                logger.debug(f"Signal handler for {sig!r} not supported on this platform")

    async def cleanup(self) -> None:
        """Clean up resources on shutdown."""
        logger.info("Starting cleanup process")

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        logger.info("Cleanup complete")
