"""Per-device dialog state with per-device locking.

Every conversation (an SMS phone number, a chat-bot user id) is in exactly one
dialog mode at a time. The store is the only shared mutable state of the
router, so callers hold ``lock(device)`` around the whole
read -> interpret -> write cycle of a message.
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)


class DialogMode(str, Enum):
    MAIN = "main"
    ADMIN = "admin"
    TRACKING_AWAIT_CODE = "tracking_await_code"


class ConversationState(BaseModel):
    """Dialog position of one device. Immutable; transitions produce a new instance."""

    model_config = ConfigDict(frozen=True)

    dialog_mode: DialogMode = DialogMode.MAIN

    def transition(self, dialog_mode: DialogMode) -> ConversationState:
        if dialog_mode is self.dialog_mode:
            return self
        return self.model_copy(update={"dialog_mode": dialog_mode})


class BoundedDict(OrderedDict):
    """Bounded dictionary with LRU eviction.

    Maintains a maximum number of entries by automatically removing
    the least recently written items when capacity is exceeded.
    """

    def __init__(self, max_size: int = 10_000):
        self.max_size = max_size
        super().__init__()

    def __setitem__(self, key, value):
        if key in self:
            self.move_to_end(key)
        elif len(self) >= self.max_size:
            evicted, _ = self.popitem(last=False)
            logger.debug("Evicted conversation state for device %s", evicted)
        super().__setitem__(key, value)


@dataclass(frozen=True)
class _Record:
    state: ConversationState
    updated_at: float


class ConversationStore:
    """In-memory mapping from device id to ``ConversationState``.

    Args:
        max_conversations: Upper bound on tracked devices, oldest updates are evicted first
        session_ttl_seconds: Optional expiry for ADMIN/TRACKING sessions; None keeps them forever
        clock: Monotonic time source, replaceable in tests
    """

    def __init__(
        self,
        max_conversations: int = 10_000,
        session_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session_ttl_seconds = session_ttl_seconds
        self._clock = clock
        self._records: BoundedDict = BoundedDict(max_size=max_conversations)
        # AIDEV-NOTE: A lock lives only while some coroutine holds or awaits it
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, device: object) -> bool:
        return device in self._records

    def get(self, device: str) -> ConversationState:
        """Return the device's state, creating a MAIN state for unseen devices."""
        record = self._records.get(device)
        if record is None:
            state = ConversationState()
            self.set(device, state)
            return state

        if self._is_expired(record):
            logger.info(
                "Conversation for device %s expired in mode %s, resetting to main menu",
                device,
                record.state.dialog_mode.value,
            )
            state = ConversationState()
            self.set(device, state)
            return state

        return record.state

    def set(self, device: str, state: ConversationState) -> None:
        self._records[device] = _Record(state=state, updated_at=self._clock())

    def _is_expired(self, record: _Record) -> bool:
        if self.session_ttl_seconds is None or record.state.dialog_mode is DialogMode.MAIN:
            return False
        return self._clock() - record.updated_at > self.session_ttl_seconds

    @asynccontextmanager
    async def lock(self, device: str) -> AsyncIterator[None]:
        """Hold the exclusive lock of one device. Waiters are served in arrival order."""
        device_lock = self._locks.get(device)
        if device_lock is None:
            device_lock = asyncio.Lock()
            self._locks[device] = device_lock
        async with device_lock:
            yield
