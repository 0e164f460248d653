"""
Session tracking for document viewers.

A ViewSession measures one reader's visit to one document:

- tick(): once per tick interval, credits one unit to the current page
- record_page_change() / record_download(): fire-and-forget events
- checkpoint(): writes total_time, page_times and updated_at
- end(): cancels the timers, then flushes exactly once

total_time is wall-clock time since begin, not the sum of page ticks.
While the host is suspended no ticks arrive but wall-clock time still
passes, so the two drift apart. That is expected and is never reconciled.
The clock starts once the view row exists, after the location lookup and
create_view, so time spent opening the document is not counted.

Page numbers are 1-based. A tick or page change naming a page below 1 is
logged and ignored rather than stored.

Telemetry is best-effort. Location lookups, view creation, checkpoints and
events that fail are logged and dropped; they never reach the reader.
The only error begin() raises is for a document that can't be opened.

All handlers run on one event loop, so page_times needs no locking. The
checkpoint lock only keeps writes from overlapping, which keeps
updated_at ordered.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from ..user_agent import ClientContext, classify_device
from .models import DeviceInfo, DocumentEvent, ViewerLocation
from .store import ViewStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentNotFoundError(LookupError):
    """Raised when a reader opens a document that doesn't exist."""
    pass


class TrackerState(str, Enum):
    ACTIVE = "active"
    FLUSHING = "flushing"
    ENDED = "ended"


class ViewSession:
    """Handle for one reader's visit. Only this object writes its view."""

    def __init__(
        self,
        store: ViewStore,
        document_id: str,
        view_id: str | None,
        started_at: datetime,
        tick_interval: float = 1.0,
        checkpoint_interval: float = 30.0,
        clock: Clock = _utcnow,
        current_page: int = 1,
    ):
        self.store = store
        self.document_id = document_id
        self.view_id = view_id
        self.started_at = started_at
        self.tick_interval = tick_interval
        self.checkpoint_interval = checkpoint_interval
        self.current_page = current_page

        self.page_times: dict[int, int] = {}
        self.total_time = 0
        self.last_checkpoint_at: datetime | None = None
        self.state = TrackerState.ACTIVE

        self._clock = clock
        self._timers: list[asyncio.Task] = []
        self._pending: set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return (
            f"<ViewSession view={self.view_id} document={self.document_id} "
            f"state={self.state.value} last_checkpoint={self.last_checkpoint_at}>"
        )

    @property
    def is_attached(self) -> bool:
        """False when the view record could not be created."""
        return self.view_id is not None

    @property
    def is_active(self) -> bool:
        return self.state is TrackerState.ACTIVE

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the tick and periodic checkpoint timers."""
        if not self.is_active or self._timers:
            return
        self._timers = [
            asyncio.create_task(self._tick_loop()),
            asyncio.create_task(self._checkpoint_loop()),
        ]

    async def _tick_loop(self) -> None:
        while self.is_active:
            await asyncio.sleep(self.tick_interval)
            self.tick()

    async def _checkpoint_loop(self) -> None:
        # The next sleep starts only after the previous write resolved
        while True:
            await asyncio.sleep(self.checkpoint_interval)
            if not self.is_active:
                return
            # A write in flight when end() cancels this loop runs to completion;
            # the final flush queues behind it on the write lock
            await asyncio.shield(self._write())

    # -------------------------------------------------------------------------
    # Dwell time
    # -------------------------------------------------------------------------

    def tick(self, page: int | None = None) -> None:
        """Credit one unit of time to the page on screen."""
        if not self.is_active:
            return
        if page is None:
            page = self.current_page
        if page < 1:
            logger.warning(f"Ignoring tick for invalid page {page} on view {self.view_id}")
            return
        self.page_times[page] = self.page_times.get(page, 0) + 1

    def elapsed_seconds(self) -> int:
        """Whole wall-clock seconds since begin, never decreasing."""
        elapsed = int((self._clock() - self.started_at).total_seconds())
        self.total_time = max(self.total_time, elapsed, 0)
        return self.total_time

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def record_page_change(self, from_page: int, to_page: int) -> asyncio.Task | None:
        """Record navigation and switch which page later ticks credit."""
        if not self.is_active:
            return None
        if to_page < 1:
            logger.warning(f"Ignoring change to invalid page {to_page} on view {self.view_id}")
            return None
        self.current_page = to_page
        if not self.is_attached:
            return None
        event = DocumentEvent.page_change(
            self.document_id, self.view_id, from_page, to_page, timestamp=self._clock()
        )
        return self._dispatch(event)

    def navigate(self, to_page: int) -> asyncio.Task | None:
        """Follow the renderer's current page; no event if it didn't move."""
        if to_page == self.current_page:
            return None
        return self.record_page_change(self.current_page, to_page)

    def record_download(self) -> asyncio.Task | None:
        if not self.is_active or not self.is_attached:
            return None
        event = DocumentEvent.download(self.document_id, self.view_id, timestamp=self._clock())
        return self._dispatch(event)

    def _dispatch(self, event: DocumentEvent) -> asyncio.Task:
        task = asyncio.create_task(self._append_event(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _append_event(self, event: DocumentEvent) -> None:
        try:
            await self.store.append_event(event)
        except Exception as e:
            logger.error(
                f"Failed to record {event.event_type.value} event for view {self.view_id}: {e}"
            )
            return
        logger.debug(f"Recorded {event.event_type.value} event for view {self.view_id}")

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def checkpoint(self) -> bool:
        """Write accumulated time now. Returns whether the write succeeded."""
        if not self.is_active:
            return False
        return await self._write()

    async def _write(self) -> bool:
        if not self.is_attached:
            return False

        async with self._write_lock:
            total_time = self.elapsed_seconds()
            page_times = dict(self.page_times)
            updated_at = self._clock()
            try:
                await self.store.update_view(self.view_id, total_time, page_times, updated_at)
            except Exception as e:
                logger.error(f"Checkpoint failed for view {self.view_id}: {e}")
                return False

        self.last_checkpoint_at = updated_at
        return True

    async def end(self) -> None:
        """Stop tracking: cancel timers, wait for events, flush once."""
        if not self.is_active:
            return

        self.state = TrackerState.FLUSHING
        try:
            for timer in self._timers:
                timer.cancel()
            if self._timers:
                await asyncio.gather(*self._timers, return_exceptions=True)
            self._timers = []

            if self._pending:
                await asyncio.gather(*list(self._pending), return_exceptions=True)

            await self._write()
        finally:
            self.state = TrackerState.ENDED
            logger.debug(
                f"Ended view {self.view_id}: {self.total_time}s total, "
                f"{len(self.page_times)} pages"
            )


class SessionTracker:
    """Creates ViewSessions for readers opening documents."""

    def __init__(
        self,
        store: ViewStore,
        resolver=None,
        classifier: Callable[[ClientContext | None], DeviceInfo] = classify_device,
        tick_interval: float = 1.0,
        checkpoint_interval: float = 30.0,
        clock: Clock = _utcnow,
    ):
        self.store = store
        self.resolver = resolver
        self.classifier = classifier
        self.tick_interval = tick_interval
        self.checkpoint_interval = checkpoint_interval
        self._clock = clock

    async def _lookup_location(self, client_context: ClientContext | None) -> ViewerLocation:
        ip_address = client_context.ip_address if client_context else None
        if self.resolver is None or not ip_address:
            return ViewerLocation()
        try:
            return await self.resolver.lookup(ip_address)
        except Exception as e:
            logger.error(f"Error fetching location data: {e}")
            return ViewerLocation()

    def _classify(self, client_context: ClientContext | None) -> DeviceInfo:
        try:
            return self.classifier(client_context)
        except Exception as e:
            logger.error(f"Error classifying device: {e}")
            return DeviceInfo(device="")

    async def begin(
        self,
        document_id: str,
        client_context: ClientContext | None = None,
        autostart: bool = True,
    ) -> ViewSession:
        """Open a view of a document and start measuring it.

        Raises:
            DocumentNotFoundError: The document doesn't exist. Errors looking
                the document up propagate too; the viewer can't open it.
        """
        if not document_id:
            raise DocumentNotFoundError("No document id given")

        document = await self.store.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        location = await self._lookup_location(client_context)
        device_info = self._classify(client_context)

        view_id = None
        try:
            view = await self.store.create_view(document_id, location, device_info)
            view_id = view.id
        except Exception as e:
            logger.error(f"Error initializing view of document {document_id}: {e}")

        session = ViewSession(
            self.store,
            document_id,
            view_id,
            started_at=self._clock(),
            tick_interval=self.tick_interval,
            checkpoint_interval=self.checkpoint_interval,
            clock=self._clock,
        )
        logger.debug(f"Began view {view_id} of document {document_id}")

        if autostart:
            session.start()
        return session

    @asynccontextmanager
    async def track(self, document_id: str, client_context: ClientContext | None = None):
        """Track a view for the duration of the block; end() always runs."""
        session = await self.begin(document_id, client_context)
        try:
            yield session
        finally:
            await session.end()
