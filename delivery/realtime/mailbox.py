"""Bounded per-subscriber frame queue.

Producers call :meth:`Mailbox.offer` from any thread or task and never wait
beyond a short internal lock. The single consumer (the subscriber's stream)
awaits :meth:`Mailbox.get` on its event loop. When the mailbox is closed the
consumer drains whatever is left and then receives ``None``.

When full, the newest frame is dropped and counted in ``dropped``.
"""
from __future__ import annotations
import asyncio
import threading
from collections import deque
from typing import Deque, Optional


def _wake(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)


class Mailbox:
    def __init__(self, user_id: int, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.user_id = user_id
        self.capacity = capacity
        self.dropped = 0
        self._frames: Deque[bytes] = deque()
        self._lock = threading.Lock()
        self._closed = False
        self._waiter: Optional[asyncio.Future] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Mailbox user={self.user_id} {state} {len(self)}/{self.capacity}>"

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, frame: bytes) -> bool:
        """Enqueue without blocking. False if the frame was not accepted."""
        with self._lock:
            if self._closed:
                return False
            if len(self._frames) >= self.capacity:
                self.dropped += 1
                return False
            self._frames.append(frame)
            self._notify_locked()
        return True

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._notify_locked()

    def drain(self) -> list[bytes]:
        with self._lock:
            frames = list(self._frames)
            self._frames.clear()
        return frames

    async def get(self) -> Optional[bytes]:
        """Next frame in FIFO order; None once closed and drained."""
        while True:
            with self._lock:
                if self._frames:
                    return self._frames.popleft()
                if self._closed:
                    return None
                waiter = asyncio.get_running_loop().create_future()
                self._waiter = waiter
            try:
                await waiter
            except asyncio.CancelledError:
                with self._lock:
                    if self._waiter is waiter:
                        self._waiter = None
                raise

    def _notify_locked(self) -> None:
        waiter = self._waiter
        if waiter is None:
            return
        self._waiter = None
        loop = waiter.get_loop()
        if loop.is_closed():
            return
        # producers may live on a threadpool worker, never touch the loop directly
        loop.call_soon_threadsafe(_wake, waiter)
