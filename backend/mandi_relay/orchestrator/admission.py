from __future__ import annotations

import asyncio
import logging
from typing import Dict


class AutomationSwitch:
    """Process-wide on/off flag. Only the control surface calls `set`."""

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = bool(enabled)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set(self, enabled: bool) -> bool:
        enabled = bool(enabled)
        if enabled != self._enabled:
            logging.getLogger(__name__).info("Automation turned %s", "ON" if enabled else "OFF")
        self._enabled = enabled
        return self._enabled


class SourceChannelLocks:
    """One asyncio.Lock per source channel.

    asyncio.Lock wakes waiters in FIFO order, so cycles for one source run in
    arrival order.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, channel_id: str) -> asyncio.Lock:
        lock = self._locks.get(channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[channel_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
