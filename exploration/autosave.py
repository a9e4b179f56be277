"""Debounced, best-effort persistence of the active session."""
import asyncio
import logging
from collections.abc import Callable

from domain.models import UNTITLED_QUERY, Session
from ports.history import HistoryStorePort

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class DebouncedSessionSaver:
    """
    Coalesces bursts of graph changes into one history write.

    Each `schedule` call restarts the timer; the session is built only
    when the timer fires, so the newest state is what gets saved.
    Save failures are logged and swallowed: the in-memory session stays
    usable and the next change tries again.
    """

    def __init__(self, history: HistoryStorePort, delay_seconds: float = 1.0):
        self.history = history
        self.delay_seconds = delay_seconds
        self._pending: asyncio.Task | None = None
        self._factory: SessionFactory | None = None
        self.dirty = False
        self.last_error: Exception | None = None

    def schedule(self, factory: SessionFactory) -> None:
        """Request a save of whatever `factory` returns once things settle."""
        self._factory = factory
        self.dirty = True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: leave it dirty, the next flush() or schedule() picks it up.
            return
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = loop.create_task(self._save_later())

    async def _save_later(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        await self._save()

    async def _save(self) -> bool:
        if self._factory is None or not self.dirty:
            return False
        session = self._factory()
        if not session.nodes:
            # Blank sessions (after reset or before the first search) are not history.
            self.dirty = False
            return False
        if not session.query:
            session.query = UNTITLED_QUERY
        self.dirty = False
        try:
            await self.history.save(session)
        except asyncio.CancelledError:
            self.dirty = True
            raise
        except Exception as e:
            self.dirty = True
            self.last_error = e
            logger.error("Failed to save session '%s': %s", session.id, e)
            return False
        self.last_error = None
        logger.debug("Saved session '%s' (%d nodes)", session.id, len(session.nodes))
        return True

    async def flush(self) -> bool:
        """
        Save now if anything is pending.

        Returns:
            True if a save happened and succeeded
        """
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        return await self._save()

    async def aclose(self) -> None:
        """Cancel the timer without saving."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
            try:
                await self._pending
            except asyncio.CancelledError:
                pass
        self._pending = None
