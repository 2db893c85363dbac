"""Animation-frame scheduling for the selection evaluator and hover loop."""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class FrameScheduler(Protocol):
    """``requestAnimationFrame``-style callback scheduling."""

    def request_frame(self, callback: Callable[[], None]) -> Any:
        """Run ``callback`` on the next frame; returns a cancellable handle."""
        ...

    def cancel_frame(self, handle: Any) -> None:
        """Cancel a callback that has not run yet (no-op otherwise)."""
        ...


class AsyncioFrameScheduler:
    """Frames driven by the running asyncio loop at a fixed interval."""

    def __init__(
        self,
        frame_interval: float = 1 / 60,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.frame_interval = frame_interval
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(self.frame_interval, callback)

    def cancel_frame(self, handle: Any) -> None:
        if isinstance(handle, asyncio.TimerHandle):
            handle.cancel()


class ManualFrameScheduler:
    """Frames that only advance when ``run_frame`` is called.

    Callbacks requested while a frame is running are deferred to the next
    frame, the same as ``requestAnimationFrame``.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._pending: dict[int, Callable[[], None]] = {}
        self.frames_run = 0

    def request_frame(self, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        self._pending[handle] = callback
        return handle

    def cancel_frame(self, handle: Any) -> None:
        self._pending.pop(handle, None)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def run_frame(self) -> int:
        """Run every callback queued before this frame; returns how many ran."""
        due = self._pending
        self._pending = {}
        for callback in due.values():
            callback()
        self.frames_run += 1
        return len(due)

    def run_frames(self, count: int) -> None:
        for _ in range(count):
            self.run_frame()
