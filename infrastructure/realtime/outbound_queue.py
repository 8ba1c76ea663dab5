"""Bounded, closable per-connection send queue.

The hub is the only producer and never waits: ``offer`` either accepts
the payload or reports that the queue is saturated (or closed). The
connection's write pump is the only consumer.
"""
from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, List, Optional


class OutboundQueue:
    def __init__(self, maxsize: int = 256) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._maxsize = maxsize
        self._items: Deque[str] = deque()
        self._closed = False
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def full(self) -> bool:
        return len(self._items) >= self._maxsize

    def offer(self, payload: str) -> bool:
        """Append without blocking. Returns False if saturated or closed."""
        if self._closed or self.full():
            return False
        self._items.append(payload)
        self._ready.set()
        return True

    def close(self) -> bool:
        """Close the queue. Only the first call has any effect."""
        if self._closed:
            return False
        self._closed = True
        self._ready.set()
        return True

    async def get(self) -> Optional[str]:
        """Next payload, or None once the queue is closed and drained.

        Payloads buffered before ``close`` are still handed out.
        """
        while not self._items:
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self._items.popleft()

    def drain_nowait(self) -> List[str]:
        """Take everything currently buffered."""
        items = list(self._items)
        self._items.clear()
        return items
