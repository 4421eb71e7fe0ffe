"""Progress event bus.

Transfers publish ``ProgressEvent`` objects through ``emit_event``; reporters
subscribe to the active bus. The process-wide bus is used unless a caller
installs a private one with ``isolated_bus``, e.g. to collect the events of a
single batch without reaching the reporters.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable

from s2ctl.model import ProgressEvent, ProgressEventType

log = logging.getLogger(__name__)

EventHandler = Callable[[ProgressEvent], None]


class EventBus:
    """Fans events out to subscribed handlers, safe to use from several threads."""

    def __init__(self):
        self._handlers: list[EventHandler] = []
        self._lock = threading.Lock()

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def subscribe(self, handler: EventHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                # a broken reporter must never interrupt a transfer
                log.debug("Progress handler failed on %s: %s", event.type.value, e)


_process_bus = EventBus()
_active_bus: ContextVar[EventBus | None] = ContextVar("s2ctl_event_bus", default=None)


def get_bus() -> EventBus:
    """Bus installed by ``isolated_bus`` in the current context, the process-wide one otherwise."""
    return _active_bus.get() or _process_bus


@contextmanager
def isolated_bus() -> Iterator[EventBus]:
    """Route the events of the enclosed block to a fresh bus.

    Example:
        >>> with isolated_bus() as bus:
        ...     bus.subscribe(print)
        ...     downloader.download_products(products)
    """
    bus = EventBus()
    token = _active_bus.set(bus)
    try:
        yield bus
    finally:
        _active_bus.reset(token)


def emit_event(event_type: ProgressEventType, task_id: str, **data) -> None:
    """Publish an event on the active bus.

    Args:
        event_type (ProgressEventType): kind of event
        task_id (str): tracked task, e.g. ``product_<name>`` or ``download_<item id>``
    """
    get_bus().emit(ProgressEvent(type=event_type, task_id=task_id, data=data))
