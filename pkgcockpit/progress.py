#===============================================================================
#  Package Cockpit | progress.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Broadcast channels for progress reports, the derived global percentage and
#  user notices. Publishing never blocks: every subscriber owns a bounded
#  queue and items that do not fit are dropped for that subscriber only.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import Callable, Generic, List, Optional, TypeVar

from .constants import PROGRESS_QUEUE_SIZE
from .models import Notice, ProgressItem, ProgressKind, ProgressReport

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[ProgressReport], None]

_CLOSED = object()


class Subscription(Generic[T]):
    """One observer's view of a channel; iterate with `async for`."""

    def __init__(self, channel: "ProgressChannel[T]", maxsize: int):
        self._channel = channel
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def _offer(self, item) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            if item is _CLOSED:
                # make room for the close marker so iteration can end
                self._queue.get_nowait()
                self._queue.put_nowait(item)
                return
            self.dropped += 1
            logger.debug(f"Subscriber on '{self._channel.name}' is full, dropped item")

    def deliver(self, item) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._offer(item)
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._offer, item)

    async def get(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            self.closed = True
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> Optional[T]:
        """Next queued item or None; useful in tests and polling callers."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self.closed = True
            return None
        return item

    def drain(self) -> List[T]:
        items: List[T] = []
        while True:
            item = self.get_nowait()
            if item is None:
                return items
            items.append(item)

    def unsubscribe(self) -> None:
        self._channel._remove(self)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        if self.closed:
            raise StopAsyncIteration
        return await self.get()


class ProgressChannel(Generic[T]):
    """Fire-and-forget broadcast to any number of subscribers.

    No replay: a subscriber sees only items published after it subscribed.
    """

    def __init__(self, name: str = "progress", maxsize: int = PROGRESS_QUEUE_SIZE):
        self.name = name
        self.maxsize = maxsize
        self._subscribers: List[Subscription[T]] = []
        self._lock = threading.Lock()

    def subscribe(self, maxsize: Optional[int] = None) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, maxsize or self.maxsize)
        with self._lock:
            self._subscribers.append(sub)
        return sub

    def _remove(self, sub: Subscription[T]) -> None:
        with self._lock:
            if sub in self._subscribers:
                self._subscribers.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, item: T) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for sub in subscribers:
            sub.deliver(item)

    def close(self) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            self._subscribers.clear()
        for sub in subscribers:
            sub.deliver(_CLOSED)


class EventHub:
    """Process-wide channels, created once at startup and injected where needed."""

    def __init__(self, maxsize: int = PROGRESS_QUEUE_SIZE):
        self.progress: ProgressChannel[ProgressItem] = ProgressChannel("progress", maxsize)
        self.global_progress: ProgressChannel[int] = ProgressChannel("global_progress", maxsize)
        self.notices: ProgressChannel[Notice] = ProgressChannel("notices", maxsize)

    def notify(self, notice: Notice) -> None:
        log = logger.error if notice.persistent else logger.info
        log(f"{notice.title}: {notice.message}")
        self.notices.publish(notice)

    def close(self) -> None:
        self.progress.close()
        self.global_progress.close()
        self.notices.close()


class ProgressReporter:
    """Adapter-facing progress callable bound to one operation.

    Each report is republished on the hub as a ProgressItem and its percentage
    feeds the global progress channel.
    """

    def __init__(
        self,
        hub: EventHub,
        name: str,
        kind: ProgressKind = ProgressKind.GENERIC,
        progress_id: Optional[str] = None,
    ):
        self.hub = hub
        self.name = name
        self.kind = kind
        self.progress_id = progress_id or uuid.uuid4().hex
        self.last: Optional[ProgressReport] = None

    def __call__(self, report: ProgressReport) -> None:
        self.last = report
        self.hub.progress.publish(ProgressItem(self.progress_id, self.name, report, failed=report.failed))
        if not report.is_indeterminate:
            self.hub.global_progress.publish(report.percent_int)

    def report(self, percentage: float, message: str = "", indeterminate: bool = False) -> None:
        self(ProgressReport(percentage, message, is_indeterminate=indeterminate, kind=self.kind))

    def fail(self, message: str) -> None:
        self(ProgressReport(0, message, kind=self.kind, failed=True))
