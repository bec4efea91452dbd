"""Engine Events

Synchronous publish/subscribe hooks for dataset, draw session and result
changes. Callbacks run after the state change they report has completed.
"""

from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List
import logging

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], None]


class EngineEvent(str, Enum):
    """Notifications the engine publishes."""
    DATASET_CHANGED = "dataset_changed"
    DRAW_STATE_CHANGED = "draw_state_changed"
    RESULTS_CHANGED = "results_changed"


class EventBus:
    """Dispatches engine events to subscribers in subscription order.

    A subscriber that raises is logged and does not stop delivery to the
    remaining subscribers.
    """

    def __init__(self):
        self._subscribers: Dict[EngineEvent, List[EventCallback]] = defaultdict(list)

    def subscribe(self, event: EngineEvent, callback: EventCallback) -> Callable[[], None]:
        """Register a callback; returns a callable that unsubscribes it."""
        event = EngineEvent(event)
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[event]:
                self._subscribers[event].remove(callback)

        return unsubscribe

    def emit(self, event: EngineEvent, payload: Any = None) -> None:
        for callback in list(self._subscribers[EngineEvent(event)]):
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Subscriber failed handling {EngineEvent(event).value}")

    def subscriber_count(self, event: EngineEvent) -> int:
        return len(self._subscribers[EngineEvent(event)])
