"""Bounded hand-off of sample chunks from the device thread to the event loop."""

from __future__ import annotations

import asyncio
from collections import deque

from ..domain import SampleChunk


class ChunkBuffer:
    """Single-producer / single-consumer chunk queue.

    ``try_put`` is called from the device callback thread; ``get`` and
    ``drain`` run on the event loop that owns the recording state.
    """

    def __init__(self, capacity: int = 64):
        self._capacity = max(1, int(capacity))
        self._buffer: deque[SampleChunk] = deque()
        self._drops = 0
        self._event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._running = True

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the consuming loop; must be called from that loop."""
        self._loop = loop
        self._event = asyncio.Event()

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self.bind(asyncio.get_running_loop())
        return self._event

    def _signal_event(self) -> None:
        if self._event and self._loop:
            try:
                self._loop.call_soon_threadsafe(self._event.set)
            except RuntimeError:
                # Loop already closed; the consumer is gone.
                pass

    def try_put(self, chunk: SampleChunk) -> bool:
        if not self._running:
            return False
        if len(self._buffer) >= self._capacity:
            self._drops += 1
            return False
        self._buffer.append(chunk)
        self._signal_event()
        return True

    async def get(self) -> SampleChunk | None:
        """Return the next chunk, or None once stopped and empty."""
        event = self._get_event()
        while self._running or self._buffer:
            if self._buffer:
                return self._buffer.popleft()
            event.clear()
            try:
                await asyncio.wait_for(event.wait(), timeout=0.1)
            except asyncio.TimeoutError:
                continue
        return None

    def drain(self) -> list[SampleChunk]:
        """Pop every chunk currently queued without waiting."""
        drained: list[SampleChunk] = []
        while self._buffer:
            drained.append(self._buffer.popleft())
        return drained

    def stop(self) -> None:
        self._running = False
        self._signal_event()

    @property
    def size(self) -> int:
        return len(self._buffer)

    @property
    def drops(self) -> int:
        return self._drops

    @property
    def running(self) -> bool:
        return self._running


__all__ = ["ChunkBuffer"]
