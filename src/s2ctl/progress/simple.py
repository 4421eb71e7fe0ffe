import logging

from s2ctl.progress.base import ProgressReporter

log = logging.getLogger(__name__)


class SimpleProgressReporter(ProgressReporter):
    """Product-level progress written to the log, no byte counts."""

    def __init__(self):
        self.total_items = 0
        self.completed = 0
        self.failed = 0

    def start_batch(self, batch_id: str, total_items: int, description: str) -> None:
        self.total_items = total_items
        self.completed = 0
        self.failed = 0
        log.info("Tracking progress for %d products (%s)", total_items, description)

    def add_task(self, item_id: str, description: str) -> dict:
        if item_id.startswith("product_"):
            log.info("Started %s - %s", description, item_id.removeprefix("product_"))
        return {"item_id": item_id, "description": description}

    def set_task_duration(self, item_id: str, total: int) -> None:
        pass

    def update_progress(self, item_id: str, advance: int | None = None, description: str | None = None) -> None:
        pass

    def end_task(self, item_id: str, success: bool, description: str | None = None) -> None:
        # file level tasks are too chatty for this reporter
        if not item_id.startswith("product_"):
            return
        if success:
            self.completed += 1
        else:
            self.failed += 1
        remaining = self.total_items - self.completed - self.failed
        status = f"✓ {description or ''}" if success else f"✗ {description or ''}"
        log.info(
            "%s - %s (%d/%d, %d remaining)",
            status,
            item_id.removeprefix("product_"),
            self.completed + self.failed,
            self.total_items,
            remaining,
        )

    def end_batch(self, batch_id: str, success_count: int, failure_count: int) -> None:
        log.info(
            "Tracking completed: %d successful, %d failed, %d total",
            success_count,
            failure_count,
            self.total_items,
        )
