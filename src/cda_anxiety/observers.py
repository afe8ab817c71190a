"""Ordered registry of history listeners."""
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[list], None]


class _Handle:
    """One registration; drops deliveries older than the last one it made."""

    def __init__(self, callback: Listener):
        self.callback = callback
        self.delivered = -1
        self._lock = threading.RLock()

    def deliver(self, version: int, history: list) -> None:
        with self._lock:
            if version <= self.delivered:
                return
            self.delivered = version
            self.callback(list(history))


class ObserverRegistry:
    """Listeners are notified in registration order.

    Every change gets a version from next_version() after the new state is
    written and before it is read for delivery, so a listener never ends on
    a snapshot older than the last change. Each registration gets its own
    handle, so the same callable registered twice is notified twice and
    removed independently.
    """

    def __init__(self):
        self._handles: list[_Handle] = []
        self._lock = threading.Lock()
        self._version = 0

    def __len__(self) -> int:
        return len(self._handles)

    def next_version(self) -> int:
        with self._lock:
            self._version += 1
            return self._version

    def add(self, callback: Listener, current: Callable[[], list] | None = None) -> Callable[[], None]:
        """Register callback, then deliver current() to it if given."""
        handle = _Handle(callback)
        with self._lock:
            self._handles.append(handle)
            version = self._version

        def unsubscribe() -> None:
            with self._lock:
                if handle in self._handles:
                    self._handles.remove(handle)

        if current is not None:
            try:
                handle.deliver(version, current())
            except Exception:
                unsubscribe()
                raise
        return unsubscribe

    def notify(self, history: list, version: int | None = None) -> None:
        if version is None:
            version = self.next_version()
        with self._lock:
            handles = list(self._handles)
        logger.debug("Notifying %d listener(s) of %d result(s)", len(handles), len(history))
        for handle in handles:
            try:
                handle.deliver(version, history)
            except Exception:
                logger.exception("History listener %r failed", handle.callback)
