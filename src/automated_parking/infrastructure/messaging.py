# File: src/automated_parking/infrastructure/messaging.py
"""
Messaging Infrastructure for the Automated Parking Lot

This module implements in-process event publishing:
1. Domain events - what happened to a vehicle or a bill
2. Event Bus - publish/subscribe within the same process
3. Event Handlers - the console notifier that narrates vehicle movements
   and prints bills

Events are published by the parking service only after its unit of work has
committed, so handlers never see a change that was rolled back.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4
import logging
import threading


# ============================================================================
# EVENT TYPES
# ============================================================================

class EventType(str, Enum):
    """Domain event types"""
    VEHICLE_PARKED = "vehicle_parked"
    VEHICLE_PULLED_OUT = "vehicle_pulled_out"
    BILL_GENERATED = "bill_generated"


@dataclass
class DomainEvent:
    """Domain event message"""
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    event_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "automated_parking"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['event_type'] = self.event_type.value
        data['event_id'] = str(self.event_id)
        data['timestamp'] = self.timestamp.isoformat()
        return data


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True


# ============================================================================
# EVENT BUS (In-memory)
# ============================================================================

class EventBus:
    """
    In-memory event bus for intra-process event publishing

    Handlers run synchronously on the publishing thread. A failing handler
    is logged and does not stop the others; the parking operation that
    raised the event has already been committed by then.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to events of a specific type"""
        with self._lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)
                self._logger.debug(f"Subscribed {handler.__class__.__name__} to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe handler from events"""
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                self._logger.debug(f"Unsubscribed {handler.__class__.__name__} from {event_type.value}")

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers"""
        self._logger.debug(f"Publishing event: {event.event_type.value} (ID: {event.event_id})")

        with self._lock:
            handlers = list(self._subscribers.get(event.event_type, []))

        for handler in handlers:
            if handler.can_handle(event):
                try:
                    handler.handle(event)
                except Exception as e:
                    self._logger.error(
                        f"Error handling event {event.event_type.value} with "
                        f"{handler.__class__.__name__}: {e}"
                    )

    def clear_subscribers(self) -> None:
        """Clear all subscribers (for testing)"""
        with self._lock:
            self._subscribers.clear()


# ============================================================================
# EVENT HANDLER IMPLEMENTATIONS
# ============================================================================

FRAME_LINE = "=" * 51
BILL_HEADER = "================= PARKING BILL ===================="


class ConsoleNotificationHandler(EventHandler):
    """
    Narrates vehicle movements and prints bills through the log

    Output is framed so it stands out between regular log lines; the format
    is for operators only and carries no contract.
    """

    def __init__(self, currency_symbol: str = "€"):
        self.currency_symbol = currency_symbol
        self._logger = logging.getLogger(self.__class__.__name__)

    def handle(self, event: DomainEvent) -> None:
        if event.event_type == EventType.VEHICLE_PARKED:
            self._handle_vehicle_parked(event)
        elif event.event_type == EventType.VEHICLE_PULLED_OUT:
            self._handle_vehicle_pulled_out(event)
        elif event.event_type == EventType.BILL_GENERATED:
            self._handle_bill_generated(event)

    def _handle_vehicle_parked(self, event: DomainEvent) -> None:
        vehicle_id = event.data.get('vehicle_id')
        self.print_movement(f"The car {vehicle_id} is being transported to the parking lot.")
        self.print_movement(
            f"The automated parking lot system assigned the car {vehicle_id} to the parking "
            f"space {event.data.get('parking_space_id')} on the floor {event.data.get('floor')}."
        )

    def _handle_vehicle_pulled_out(self, event: DomainEvent) -> None:
        self.print_movement(
            f"The car {event.data.get('vehicle_id')} is being transported out of the parking lot."
        )

    def _handle_bill_generated(self, event: DomainEvent) -> None:
        self._logger.info(self.format_bill(event.data))

    def print_movement(self, information: str) -> None:
        self._logger.info(f"\n\n{FRAME_LINE}\n>> {information}\n{FRAME_LINE}\n")

    def format_bill(self, bill: Dict[str, Any]) -> str:
        rows = [
            ("Car ID", bill.get('vehicle_id')),
            ("Parking started at", bill.get('billing_from')),
            ("Parking ended at", bill.get('billing_to')),
            ("Price-per-minute", f"{bill.get('price_per_minute')}{self.currency_symbol}"),
            ("PARKING FEE", f"{bill.get('total_amount_to_be_paid')}{self.currency_symbol}"),
        ]
        lines = [f"{label:<25} {str(value):>25}" for label, value in rows]
        return "\n\n" + "\n".join([FRAME_LINE, BILL_HEADER, *lines, FRAME_LINE])
