"""Bounded single-producer / single-consumer channel with close semantics.

A thin layer over :class:`queue.Queue` that adds what the scanner's
producer/consumer handoff needs: an explicit end-of-stream, iteration that
stops at it, and a producer side that can give up when asked to stop.
"""
from __future__ import annotations

import queue
import threading
import time
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised by :meth:`Channel.get` once the stream has ended and is empty."""


# Seconds between checks of the stop / closed flags while blocked
_POLL_INTERVAL = 0.05


class Channel(Generic[T]):
    """FIFO of at most ``capacity`` items (a capacity below 1 is treated as 1).

    The producer calls :meth:`put` and finally :meth:`close`, exactly once.
    The consumer iterates, or calls :meth:`drain_nowait` to take whatever is
    ready without blocking.
    """

    def __init__(self, capacity: int, name: str = "") -> None:
        self.name = name
        self.capacity = max(1, capacity)
        self._q: queue.Queue[object] = queue.Queue(maxsize=self.capacity)
        self._producer_done = threading.Event()
        self._consumer_done = False

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def put(self, item: T, stop: threading.Event | None = None) -> bool:
        """Block until there is room, then enqueue ``item``.

        With ``stop`` given, gives up and returns False once it is set.
        """
        if self._producer_done.is_set():
            raise RuntimeError(f"put on closed channel {self.name!r}")
        if stop is None:
            self._q.put(item)
            return True
        while not stop.is_set():
            try:
                self._q.put(item, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def close(self) -> None:
        """Mark the end of the stream.  Never blocks."""
        if self._producer_done.is_set():
            return
        self._producer_done.set()
        try:
            self._q.put_nowait(_CLOSED)
        except queue.Full:
            # The consumer notices the flag once the queue runs empty.
            pass

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        """True once the consumer has seen the end of the stream."""
        return self._consumer_done

    def _get(self, timeout: float | None) -> object:
        # timeout None blocks until an item or the end; 0 never blocks
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._consumer_done:
            wait = _POLL_INTERVAL
            if deadline is not None:
                wait = min(wait, deadline - time.monotonic())
            try:
                item = self._q.get(timeout=wait) if wait > 0 else self._q.get_nowait()
            except queue.Empty:
                if self._producer_done.is_set() and self._q.empty():
                    self._consumer_done = True
                    break
                if deadline is not None and time.monotonic() >= deadline:
                    raise
                continue
            if item is _CLOSED:
                self._consumer_done = True
                break
            return item
        return _CLOSED

    def get(self, timeout: float | None = None) -> T:
        """Next item, waiting at most ``timeout`` seconds (None waits forever).

        Raises:
            queue.Empty: nothing arrived in time.
            ChannelClosed: the producer closed the channel and it is empty.
        """
        item = self._get(timeout)
        if item is _CLOSED:
            raise ChannelClosed(self.name)
        return item  # type: ignore[return-value]

    def drain_nowait(self) -> list[T]:
        """Return every item available right now, without blocking."""
        out: list[T] = []
        while True:
            try:
                item = self._get(0)
            except queue.Empty:
                return out
            if item is _CLOSED:
                return out
            out.append(item)  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self._get(None)
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]

    def __repr__(self) -> str:
        state = "closed" if self._consumer_done else "open"
        return f"Channel({self.name!r}, capacity={self.capacity}, {state})"
