"""
AdaTopo Change Notification
===========================

Best-effort delivery of topology change events to an external sink.

The manager never waits on a sink. When an event loop is running:
- asynchronous sinks are scheduled as background tasks
- synchronous sinks run in a worker thread via ``asyncio.to_thread``
- sinks that declare ``blocking = False`` (pure in-memory work) run inline
Deliveries are applied one at a time in emission order, and sink failures
are logged and counted, never raised. Without a running loop synchronous
sinks run inline and asynchronous deliveries are dropped.

Bundled sinks:
- LoggingChangeSink: one log line per event
- JsonlChangeSink: one JSON object per line in a file
- MemoryChangeSink: bounded in-process buffer
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from adatopo.models import TopologyChangeEvent

logger = logging.getLogger("adatopo.notify")


@runtime_checkable
class ChangeSink(Protocol):
    """Receives topology change events. May return an awaitable.

    A sink whose ``notify`` only touches memory can set ``blocking = False``
    to be called inline on the event loop.
    """

    def notify(self, event: TopologyChangeEvent) -> Optional[Awaitable[Any]]: ...


class ChangeNotifier:
    """Fire-and-forget wrapper around a ChangeSink.

    Usage:
        notifier = ChangeNotifier(JsonlChangeSink("changes.jsonl"))
        notifier.notify(event)      # returns immediately
        await notifier.drain()      # optional, e.g. on shutdown
    """

    def __init__(self, sink: Optional[ChangeSink] = None):
        self.sink = sink
        self._pending: set[asyncio.Task] = set()
        self._order = asyncio.Lock()
        self.failures = 0

    def notify(self, event: TopologyChangeEvent) -> None:
        if self.sink is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if inspect.iscoroutinefunction(self.sink.notify):
            if loop is None:
                logger.warning(f"No running event loop; dropping async delivery of {event.change_type.value}")
                return
            self._schedule(loop, lambda: self.sink.notify(event), event)
            return

        if loop is not None and getattr(self.sink, "blocking", True):
            self._schedule(loop, lambda: asyncio.to_thread(self.sink.notify, event), event)
            return

        try:
            result = self.sink.notify(event)
        except Exception as e:
            self.failures += 1
            logger.warning(f"Change sink failed for {event.change_type.value}: {e}")
            return
        if inspect.isawaitable(result):
            if loop is None:
                logger.warning(f"No running event loop; dropping async delivery of {event.change_type.value}")
                if inspect.iscoroutine(result):
                    result.close()
                return
            self._schedule(loop, lambda: result, event)

    def _schedule(
        self,
        loop: asyncio.AbstractEventLoop,
        start: Callable[[], Awaitable[Any]],
        event: TopologyChangeEvent,
    ) -> None:
        task = loop.create_task(self._deliver(start, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, start: Callable[[], Awaitable[Any]], event: TopologyChangeEvent) -> None:
        # tasks start in creation order, so the lock hands out turns in emission order
        async with self._order:
            try:
                result = await start()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.failures += 1
                logger.warning(f"Change sink failed for {event.change_type.value}: {e}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (failures are already contained)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


class LoggingChangeSink:
    blocking = False

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def notify(self, event: TopologyChangeEvent) -> None:
        logger.log(
            self.level,
            f"[{event.change_type.value}] {event.details} "
            f"(efficiency={event.metrics.efficiency:.3f}, resilience={event.metrics.resilience:.2f})",
        )


class JsonlChangeSink:
    """Appends one JSON object per event to ``path``, flushing after each write.

    Unreachable path metrics (infinite) are written as ``null`` so every line
    is strict JSON.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.file_handle = open(self.path, "a", encoding="utf-8")

    def notify(self, event: TopologyChangeEvent) -> None:
        self.file_handle.write(event.model_dump_json() + "\n")
        self.file_handle.flush()

    def close(self) -> None:
        if not self.file_handle.closed:
            self.file_handle.close()

    def __enter__(self) -> "JsonlChangeSink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class MemoryChangeSink:
    """Keeps the most recent ``maxlen`` events in memory."""

    blocking = False

    def __init__(self, maxlen: int = 1000):
        self.events: deque[TopologyChangeEvent] = deque(maxlen=maxlen)

    def notify(self, event: TopologyChangeEvent) -> None:
        self.events.append(event)

    def of_type(self, change_type: str) -> list[TopologyChangeEvent]:
        return [e for e in self.events if e.change_type.value == change_type]
