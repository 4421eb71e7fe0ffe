import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from s2ctl.model import ProgressEvent, ProgressEventType
from s2ctl.progress.events import get_bus

DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class LoggingConfig:
    format: str = DEFAULT_LOG_FORMAT
    handlers: list[logging.Handler] = field(default_factory=lambda: [logging.StreamHandler()])


class ProgressReporter(ABC):
    """Turns progress events from the bus into user feedback."""

    @classmethod
    def logging_config(cls) -> LoggingConfig:
        return LoggingConfig()

    def start(self) -> None:
        get_bus().subscribe(self.handle_event)

    def stop(self) -> None:
        get_bus().unsubscribe(self.handle_event)

    def handle_event(self, event: ProgressEvent) -> None:
        data = event.data
        if event.type == ProgressEventType.BATCH_STARTED:
            self.start_batch(event.task_id, data.get("total_items", 0), data.get("description", ""))
        elif event.type == ProgressEventType.TASK_CREATED:
            self.add_task(event.task_id, data.get("description", ""))
        elif event.type == ProgressEventType.TASK_DURATION:
            self.set_task_duration(event.task_id, data.get("duration", 0))
        elif event.type == ProgressEventType.TASK_PROGRESS:
            self.update_progress(event.task_id, advance=data.get("advance"), description=data.get("description"))
        elif event.type == ProgressEventType.TASK_COMPLETED:
            self.end_task(event.task_id, bool(data.get("success")), description=data.get("description"))
        elif event.type == ProgressEventType.BATCH_COMPLETED:
            self.end_batch(event.task_id, data.get("success_count", 0), data.get("failure_count", 0))

    @abstractmethod
    def start_batch(self, batch_id: str, total_items: int, description: str) -> None: ...

    @abstractmethod
    def add_task(self, item_id: str, description: str) -> Any: ...

    @abstractmethod
    def set_task_duration(self, item_id: str, total: int) -> None: ...

    @abstractmethod
    def update_progress(self, item_id: str, advance: int | None = None, description: str | None = None) -> None: ...

    @abstractmethod
    def end_task(self, item_id: str, success: bool, description: str | None = None) -> None: ...

    @abstractmethod
    def end_batch(self, batch_id: str, success_count: int, failure_count: int) -> None: ...


class EmptyProgressReporter(ProgressReporter):
    """
    Empty reporter to avoid continuos checks against None
    """

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def start_batch(self, batch_id: str, total_items: int, description: str) -> None:
        pass

    def add_task(self, item_id: str, description: str) -> Any:
        pass

    def set_task_duration(self, item_id: str, total: int) -> None:
        pass

    def update_progress(self, item_id: str, advance: int | None = None, description: str | None = None) -> None:
        pass

    def end_task(self, item_id: str, success: bool, description: str | None = None) -> None:
        pass

    def end_batch(self, batch_id: str, success_count: int, failure_count: int) -> None:
        pass
