"""
HTLC SDK - Event Hooks

Callbacks for swap lifecycle and transaction events.
"""

import logging
import time
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from enum import Enum


class EventType(Enum):
    """Available event types."""
    # Transaction lifecycle
    BEFORE_SIGN = "before_sign"
    AFTER_SIGN = "after_sign"
    BEFORE_BROADCAST = "before_broadcast"
    AFTER_BROADCAST = "after_broadcast"

    # Swap lifecycle
    SWAP_CREATED = "swap_created"
    SWAP_FUNDED = "swap_funded"
    SWAP_CLAIMED = "swap_claimed"
    SWAP_REFUNDED = "swap_refunded"

    ON_ERROR = "on_error"


@dataclass
class Event:
    """Event payload passed to handlers."""
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


EventHandler = Callable[[Event], Optional[Any]]


class EventEmitter:
    """
    Event emitter for wallet operations.

    Handlers run synchronously on the emitting thread. A handler that raises
    is reported through ON_ERROR and does not interrupt the operation.

    Example:
        emitter = EventEmitter()

        @emitter.on(EventType.SWAP_FUNDED)
        def announce(event):
            publish(event.data["descriptor"])

        wallet = HtlcWallet(provider, node, events=emitter)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []
        self.logger = logger or logging.getLogger(__name__)

    def on(self, event_type: EventType) -> Callable:
        """
        Decorator to register an event handler.

        Example:
            @emitter.on(EventType.SWAP_CLAIMED)
            def handle_claim(event):
                print(f"Claimed by {event.data['txid']}")
        """
        def decorator(handler: EventHandler) -> EventHandler:
            self.add_handler(event_type, handler)
            return handler
        return decorator

    def add_handler(self, event_type: EventType, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        self.logger.debug("Registered handler for %s", event_type.value)

    def remove_handler(self, event_type: EventType, handler: EventHandler) -> bool:
        """
        Returns:
            True if the handler was removed, False if it was not registered.
        """
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def add_global_handler(self, handler: EventHandler) -> None:
        """Register a handler that receives every event (auditing, tracing)."""
        self._global_handlers.append(handler)

    def emit(self, event_type: EventType, data: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        Emit an event to global handlers first, then to type handlers.

        Returns:
            Handler return values, excluding None.
        """
        event = Event(type=event_type, data=data or {})
        results = []

        for handler in self._global_handlers + self._handlers.get(event_type, []):
            try:
                result = handler(event)
            except Exception as e:
                self.logger.error("Handler error for %s: %s", event_type.value, e)
                if event_type != EventType.ON_ERROR:
                    self._emit_error(e, event)
                continue
            if result is not None:
                results.append(result)

        return results

    def _emit_error(self, error: Exception, source_event: Event) -> None:
        error_event = Event(
            type=EventType.ON_ERROR,
            data={
                "error": error,
                "error_type": type(error).__name__,
                "message": str(error),
                "source_event": source_event.type.value
            }
        )
        for handler in self._handlers.get(EventType.ON_ERROR, []):
            try:
                handler(error_event)
            except Exception as e:
                # an ON_ERROR handler failing is logged only
                self.logger.error("ON_ERROR handler failed: %s", e)

    def clear(self, event_type: Optional[EventType] = None) -> None:
        """Clear handlers for one event type, or all handlers if None."""
        if event_type:
            self._handlers[event_type] = []
        else:
            self._handlers.clear()
            self._global_handlers.clear()

    def handler_count(self, event_type: Optional[EventType] = None) -> int:
        if event_type:
            return len(self._handlers.get(event_type, []))
        return sum(len(h) for h in self._handlers.values()) + len(self._global_handlers)


def create_logging_hook(logger: logging.Logger) -> EventHandler:
    """Create a hook that logs every event type with its outpoint or txid."""
    def handler(event: Event) -> None:
        ref = event.data.get("outpoint") or event.data.get("txid") or "-"
        logger.info("[HTLC] %s %s", event.type.value, ref)
    return handler
