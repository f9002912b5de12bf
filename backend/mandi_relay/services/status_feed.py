from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple


Emitter = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class StatusFeed:
    """Publishes pipeline status events to the control surface.

    The event schema belongs to the UI; this only guarantees the `event` and
    `message` keys. Emit failures are logged and never reach the pipeline.
    """

    MESSAGE_RECEIVED = "message-received"
    DISPATCH_SUCCESS = "dispatch-success"
    DISPATCH_SKIPPED = "dispatch-skipped"
    DISPATCH_ERROR = "dispatch-error"

    def __init__(self, emit: Optional[Emitter] = None, channel: str = "status") -> None:
        self._emit = emit
        self._channel = channel

    async def publish(self, event: str, message: str, **fields: Any) -> None:
        if self._emit is None:
            return
        payload: Dict[str, Any] = {"event": event, "message": message, **fields}
        try:
            await self._emit(self._channel, payload)
        except Exception as e:
            logging.getLogger(__name__).warning("Status emit failed (%s): %s", event, e)


class RecordingStatusFeed(StatusFeed):
    """Keeps every event in memory; used by scripts and tests."""

    def __init__(self) -> None:
        super().__init__(emit=self._record)
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def _record(self, channel: str, payload: Dict[str, Any]) -> None:
        self.events.append((payload["event"], payload))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]
