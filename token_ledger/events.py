"""
Event System Module

Publish/subscribe notification sink for committed ledger mutations.
The ledger publishes exactly one event per successful mutating operation,
after the mutation is committed.
"""

from enum import Enum
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
import uuid
import logging
from threading import RLock

from .address import Address, ZERO_ADDRESS


class LedgerEvent(Enum):
    """Notifications emitted by the ledger"""
    TRANSFER = "ledger.transfer"                    # includes mint/burn
    APPROVAL = "ledger.approval"
    BLACKLIST_CHANGED = "ledger.blacklist_changed"
    PAUSE_CHANGED = "ledger.pause_changed"


@dataclass
class EventPayload:
    """Payload for ledger events"""
    event_type: LedgerEvent
    data: Dict[str, Any]
    sequence: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'event_type': self.event_type.value,
            'data': self.data,
            'sequence': self.sequence,
            'timestamp': self.timestamp.isoformat(),
            'event_id': self.event_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventPayload':
        """Create from dictionary"""
        return cls(
            event_type=LedgerEvent(data['event_type']),
            data=data['data'],
            sequence=data.get('sequence', 0),
            timestamp=datetime.fromisoformat(data['timestamp']) if isinstance(data['timestamp'], str) else data['timestamp'],
            event_id=data['event_id']
        )


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__name__', repr(handler))


class EventDispatcher:
    """Central event dispatcher, publish/subscribe pattern"""

    def __init__(self):
        self._handlers: Dict[LedgerEvent, List[Callable]] = {}
        self._global_handlers: List[Callable] = []  # catch-all handlers
        self._lock = RLock()
        self._sequence = 0
        self.logger = logging.getLogger("token_ledger.events")

    def subscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Subscribe to a specific event type"""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
            self.logger.debug(f"Subscribed handler {_handler_name(handler)} to {event_type.value}")

    def subscribe_all(self, handler: Callable) -> None:
        """Subscribe to ALL events"""
        with self._lock:
            self._global_handlers.append(handler)
            self.logger.debug(f"Subscribed global handler {_handler_name(handler)}")

    def unsubscribe(self, event_type: LedgerEvent, handler: Callable) -> None:
        """Unsubscribe from a specific event type"""
        with self._lock:
            try:
                self._handlers.get(event_type, []).remove(handler)
            except ValueError:
                self.logger.warning(f"Handler {_handler_name(handler)} was not subscribed to {event_type.value}")

    def unsubscribe_all(self, handler: Callable) -> None:
        """Unsubscribe a catch-all handler"""
        with self._lock:
            try:
                self._global_handlers.remove(handler)
            except ValueError:
                self.logger.warning(f"Global handler {_handler_name(handler)} was not subscribed")

    def publish(self, event: EventPayload) -> None:
        """Publish event to all subscribers, stamping its sequence number"""
        with self._lock:
            self._sequence += 1
            event.sequence = self._sequence
            self.logger.debug(f"Publishing event #{event.sequence} {event.event_type.value}")

            handlers = self._handlers.get(event.event_type, []) + self._global_handlers
            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    # The mutation is already committed; a bad subscriber must not undo it
                    self.logger.error(f"Error in event handler {_handler_name(handler)} for {event.event_type.value}: {e}")

    def clear(self) -> None:
        """Clear all handlers"""
        with self._lock:
            self._handlers.clear()
            self._global_handlers.clear()

    def get_handler_count(self, event_type: Optional[LedgerEvent] = None) -> int:
        """Get count of handlers for a specific event type or all"""
        with self._lock:
            if event_type:
                return len(self._handlers.get(event_type, []))
            total = sum(len(handlers) for handlers in self._handlers.values())
            return total + len(self._global_handlers)


class EventRecorder:
    """Catch-all subscriber that keeps every event in order"""

    def __init__(self, dispatcher: Optional[EventDispatcher] = None):
        self.events: List[EventPayload] = []
        if dispatcher is not None:
            dispatcher.subscribe_all(self)

    def __call__(self, event: EventPayload) -> None:
        self.events.append(event)

    def of_type(self, event_type: LedgerEvent) -> List[EventPayload]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


def transfer_event(sender: Address, receiver: Address, amount: int) -> EventPayload:
    """Supply movement; a zero-address side denotes mint or burn"""
    return EventPayload(
        event_type=LedgerEvent.TRANSFER,
        data={
            "from": sender.value,
            "to": receiver.value,
            "amount": str(amount),
            "kind": _transfer_kind(sender, receiver)
        }
    )


def _transfer_kind(sender: Address, receiver: Address) -> str:
    if sender == ZERO_ADDRESS:
        return "mint"
    if receiver == ZERO_ADDRESS:
        return "burn"
    return "transfer"


def approval_event(owner: Address, spender: Address, amount: int) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.APPROVAL,
        data={
            "owner": owner.value,
            "spender": spender.value,
            "amount": str(amount)
        }
    )


def blacklist_event(account: Address, blacklisted: bool) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.BLACKLIST_CHANGED,
        data={
            "account": account.value,
            "blacklisted": blacklisted
        }
    )


def pause_event(paused: bool) -> EventPayload:
    return EventPayload(
        event_type=LedgerEvent.PAUSE_CHANGED,
        data={"paused": paused}
    )
