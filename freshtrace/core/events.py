from threading import RLock
from typing import Callable, Iterable, List

from loguru import logger

from freshtrace.models.event import LedgerEventRead


Listener = Callable[[LedgerEventRead], None]


class EventBus:
    """
    In-process fan-out of committed ledger events.

    The ledger publishes only after its transaction commits, one call per
    mutation, so listeners see events in commit order. A listener that
    raises is logged and skipped; the mutation has already committed.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = RLock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, events: Iterable[LedgerEventRead]) -> None:
        with self._lock:
            listeners = list(self._listeners)
            for event in events:
                for listener in listeners:
                    try:
                        listener(event)
                    except Exception:
                        logger.exception(
                            f"Listener {listener!r} failed on event #{event.sequence} ({event.kind.value})")

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
