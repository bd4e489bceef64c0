import asyncio
from datetime import datetime
from typing import Callable, Optional
from vapeshop import logger
from vapeshop.auth.repository import PhoneCodeStore
from vapeshop.common.utils import now


class CodeCleanupWorker:
    """Periodically removes expired and used phone codes. Correctness never depends on it."""

    def __init__(self, session_maker, interval_seconds: float = 3600,
                 clock: Callable[[], datetime] = now, name: str = "CodeCleanup"):
        self.session_maker = session_maker
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    def start(self):
        """Start the sweep loop as a Task on the current event loop."""
        if self._task is None:
            self._stop = asyncio.Event()
            self._task = asyncio.create_task(self._loop())
            logger.info("[%s] started", self.name)

    async def sweep_once(self) -> int:
        async with self.session_maker() as session:
            removed = await PhoneCodeStore(session).delete_expired_or_used(self.clock())
        if removed:
            logger.info("[%s] removed %d stale phone codes", self.name, removed)
        return removed

    async def _loop(self):
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.sweep_once()
            except Exception:
                # driver level failures (refused connections) surface as plain OSErrors
                logger.exception("[%s] sweep failed; retrying next interval", self.name)

        logger.info("[%s] exiting", self.name)

    async def stop(self, wait_timeout: float = 10.0):
        if self._task is None:
            return
        self._stop.set()
        try:
            await asyncio.wait_for(self._task, timeout=wait_timeout)
        except asyncio.TimeoutError:
            logger.warning("[%s] did not finish in time; cancelling", self.name)
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        except Exception:
            logger.exception("[%s] loop ended with an error", self.name)
        finally:
            self._task = None
