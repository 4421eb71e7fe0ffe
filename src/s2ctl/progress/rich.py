from collections import namedtuple
from typing import Any

from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from s2ctl.progress.base import LoggingConfig, ProgressReporter

TaskInfo = namedtuple("TaskInfo", ("task_id", "description"))


class RichProgressReporter(ProgressReporter):
    """Rich-based progress reporter with one bar per transfer."""

    def __init__(self):
        self.progress = Progress(
            TextColumn("[bold green]{task.description}", justify="right"),
            TextColumn("[blue]{task.fields[item_id]}", justify="right"),
            BarColumn(bar_width=None),
            "[progress.percentage]{task.percentage:>3.1f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
        )
        self._active = False
        self._task_info: dict[str, TaskInfo] = {}

    @classmethod
    def logging_config(cls) -> LoggingConfig:
        return LoggingConfig(format="%(message)s", handlers=[RichHandler(rich_tracebacks=True)])

    def start(self) -> None:
        super().start()
        self.progress.start()
        self._active = True

    def start_batch(self, batch_id: str, total_items: int, description: str) -> None:
        pass

    def add_task(self, item_id: str, description: str) -> Any:
        if not self._active:
            return None
        info = self._task_info.get(item_id)
        if info is not None:
            # a product fetches several files under the same id, reuse its bar
            self.progress.reset(info.task_id, total=None, start=False, description=description)
            self._task_info[item_id] = TaskInfo(task_id=info.task_id, description=description)
            return info.task_id
        task_id = self.progress.add_task(description=description, item_id=item_id, start=False, total=None)
        self._task_info[item_id] = TaskInfo(task_id=task_id, description=description)
        return task_id

    def set_task_duration(self, item_id: str, total: int) -> None:
        if self._active and item_id in self._task_info:
            task_id = self._task_info[item_id].task_id
            self.progress.update(task_id=task_id, total=total)
            self.progress.start_task(task_id=task_id)

    def update_progress(self, item_id: str, advance: int | None = None, description: str | None = None) -> None:
        if self._active and item_id in self._task_info:
            task_info = self._task_info[item_id]
            if description and description != task_info.description:
                task_info = TaskInfo(task_id=task_info.task_id, description=description)
                self._task_info[item_id] = task_info
            self.progress.update(task_id=task_info.task_id, advance=advance, description=task_info.description)

    def end_task(self, item_id: str, success: bool, description: str | None = None) -> None:
        if self._active and item_id in self._task_info:
            status = "✓" if success else "✗"
            task_info = self._task_info[item_id]
            description = description or task_info.description
            self.progress.update(task_id=task_info.task_id, description=f"{status} {description}")

    def end_batch(self, batch_id: str, success_count: int, failure_count: int) -> None:
        pass

    def stop(self) -> None:
        super().stop()
        if self._active:
            self.progress.stop()
            self._active = False
            self._task_info.clear()
