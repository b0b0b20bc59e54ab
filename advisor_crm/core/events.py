from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    """Synchronous publish/subscribe; handlers run inside the publishing request,
    so a handler that raises fails the request that published the event."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        handlers = self._subscribers[event_name]
        if handler not in handlers:
            handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event_name: str, payload: dict[str, Any]) -> int:
        handlers = list(self._subscribers.get(event_name, ()))
        event = InternalEvent(name=event_name, payload=payload)
        for handler in handlers:
            handler(event)
        return len(handlers)


event_bus = InProcessEventBus()
