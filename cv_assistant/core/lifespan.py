import contextlib
from contextlib import asynccontextmanager
import asyncio
import logging

from cv_assistant.core.session_store import session_store

logger = logging.getLogger(__name__)

PURGE_INTERVAL_SECONDS = 300


@asynccontextmanager
async def lifespan(app):
    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            try:
                purged = session_store.purge_expired()
                if purged:
                    logger.info("session_purge purged=%s remaining=%s", purged, len(session_store))
            except Exception as exc:  # pragma: no cover
                logger.warning("session_purge_failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=PURGE_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
