"""Message value storage contract and per-message write serialisation.

The store is owned by another subsystem; the highlight engine only ever
touches the ``highlights`` field of a message value and leaves starred,
tags, notes and anything else exactly as it found them.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol

from tagalyst.errors import StorageError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from tagalyst.dom.identity import MessageRef

logger = logging.getLogger(__name__)


class MessageStore(Protocol):
    """Async key-value access to per-message metadata."""

    async def read_message(
        self, thread_key: str, message: MessageRef
    ) -> dict[str, Any]:
        """Return the message's full value (an empty dict when unset)."""
        ...

    async def write_message(
        self, thread_key: str, message: MessageRef, value: dict[str, Any]
    ) -> None:
        """Replace the message's full value."""
        ...


class MemoryMessageStore:
    """In-process ``MessageStore`` keyed by ``<thread_key>:<message_key>``.

    Values are deep-copied in both directions so callers can never mutate
    stored state without a write.
    """

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._values: dict[str, dict[str, Any]] = copy.deepcopy(initial or {})
        self.writes = 0

    async def read_message(
        self, thread_key: str, message: MessageRef
    ) -> dict[str, Any]:
        return copy.deepcopy(self._values.get(message.storage_key(thread_key), {}))

    async def write_message(
        self, thread_key: str, message: MessageRef, value: dict[str, Any]
    ) -> None:
        if not isinstance(value, dict):
            msg = f"message value must be a dict, got {type(value).__name__}"
            raise StorageError(msg)
        self._values[message.storage_key(thread_key)] = copy.deepcopy(value)
        self.writes += 1

    def get(self, storage_key: str) -> dict[str, Any]:
        """Synchronous peek at a stored value (copy)."""
        return copy.deepcopy(self._values.get(storage_key, {}))


class MessageLocks:
    """One asyncio lock per message storage key.

    Read-modify-write commits on the same message run under its lock, so
    rapid successive commits apply in arrival order instead of racing.
    Writers in other processes are not coordinated: last write wins.
    A key's lock is dropped once no commit holds or awaits it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, storage_key: str) -> AsyncIterator[None]:
        """Run the body with exclusive access to ``storage_key``."""
        lock, users = self._locks.get(storage_key, (asyncio.Lock(), 0))
        self._locks[storage_key] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[storage_key]
            if users == 1:
                del self._locks[storage_key]
            else:
                self._locks[storage_key] = (lock, users - 1)
