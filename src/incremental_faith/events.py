import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventBus:
    """Simple thread-safe in-process event bus for engine events.

    Subscribers are keyed by event class; events are emitted by instance.
    Delivery is synchronous so tests stay deterministic.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: Dict[Type[Any], List[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)  # type: ignore[arg-type]

    def unsubscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    self._subscribers.pop(event_type, None)

    def emit(self, event: Any) -> None:
        with self._lock:
            targets = [
                h
                for event_type, handlers in self._subscribers.items()
                if isinstance(event, event_type)
                for h in handlers
            ]
        for h in targets:
            try:
                h(event)
            except Exception:  # listeners must not break the simulation
                logger.exception("Event handler %r failed on %r", h, event)


@dataclass(frozen=True)
class UpgradePurchasedEvent:
    cost: int
    new_level: int
    faith_per_second: float
    remaining_faith: float


@dataclass(frozen=True)
class UpgradeRefusedEvent:
    cost: int
    current_faith: float


@dataclass(frozen=True)
class ManualActionEvent:
    faith_gained: float
    faith: float
