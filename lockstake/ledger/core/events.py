"""
Contract event bus.

The contract emits one event per committed call (lock_created,
reward_claimed, root_published, authority_key_updated). Rolled-back calls
emit nothing. Listeners run synchronously in the caller's thread; the most
recent events are also kept for the node's /events endpoint.
"""
import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from ...protocol.types.common import LedgerEvent

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


class EventBus:
    def __init__(self, history_size: int = 1000):
        self._listeners: Dict[LedgerEvent, List[Listener]] = {event: [] for event in LedgerEvent}
        self._history: Deque[Dict[str, Any]] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, event: Union[LedgerEvent, str], callback: Listener) -> None:
        """
        Register a listener.

        Args:
            event: LedgerEvent or its value (e.g. 'reward_claimed')
            callback: Called with the event fields as keyword arguments
        """
        self._listeners[LedgerEvent(event)].append(callback)
        logger.debug(f"Listener added for {LedgerEvent(event).value}")

    def unsubscribe(self, event: Union[LedgerEvent, str], callback: Listener) -> bool:
        listeners = self._listeners[LedgerEvent(event)]
        if callback in listeners:
            listeners.remove(callback)
            return True
        return False

    def emit(self, event: Union[LedgerEvent, str], **fields: Any) -> None:
        """
        Record an event and deliver it to every listener.

        A failing listener is logged; the call that produced the event has
        already committed and other listeners still run.
        """
        event = LedgerEvent(event)
        with self._lock:
            self._history.append({"event": event.value, "timestamp": time.time(), **fields})

        for callback in list(self._listeners[event]):
            try:
                callback(**fields)
            except Exception as e:
                logger.error(f"Listener for {event.value} failed: {e}", exc_info=True)

    def recent(self, limit: int = 50, event: Optional[Union[LedgerEvent, str]] = None) -> List[Dict[str, Any]]:
        """Most recent events, newest last, optionally of one type."""
        with self._lock:
            items = list(self._history)
        if event is not None:
            items = [item for item in items if item["event"] == LedgerEvent(event).value]
        return items[-limit:] if limit > 0 else []

    def clear(self) -> None:
        for listeners in self._listeners.values():
            listeners.clear()
        with self._lock:
            self._history.clear()
