"""
Notification bus for detect filter events.

Carries ConditionDetected and ModelStatusChanged to whoever embeds the
filter. Handlers run on the publishing thread (tick or config update), so
they must be quick; a handler that raises is logged and counted, and the
remaining handlers still run.
"""
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Type

from detect_filter.utils.failures import FailureManager
from detect_filter.utils.logger import Logger

Handler = Callable[[Any], None]


class EventBus:
    """Type-keyed publish/subscribe for filter notifications."""

    def __init__(self, failures: Optional[FailureManager] = None):
        self._handlers: Dict[Type, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()
        self.failures = failures
        self.logger = Logger("EventBus")

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def publish(self, event: Any) -> int:
        """
        Deliver an event to the handlers registered for its exact type.

        Returns:
            Number of handlers that completed without raising.
        """
        with self._lock:
            handlers = list(self._handlers.get(type(event), ()))

        delivered = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                name = getattr(handler, "__qualname__", repr(handler))
                self.logger.error(f"{type(event).__name__} handler {name} failed: {e}")
                if self.failures is not None:
                    self.failures.record_failure(e)
            else:
                delivered += 1
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()
