"""Progress reporting for product downloads.

- EmptyProgressReporter: No-op reporter for silent operation
- SimpleProgressReporter: Product-level progress through logging
- RichProgressReporter: Terminal progress bars

Reporters subscribe to the progress event bus while running and are
selected by name through the registry.
"""

from typing import Any

from s2ctl.progress.base import EmptyProgressReporter, LoggingConfig, ProgressReporter
from s2ctl.progress.rich import RichProgressReporter
from s2ctl.progress.simple import SimpleProgressReporter
from s2ctl.registry import Registry

registry = Registry[ProgressReporter](name="reporter")
registry.register("empty", EmptyProgressReporter)
registry.register("simple", SimpleProgressReporter)
registry.register("rich", RichProgressReporter)

__all__ = [
    "ProgressReporter",
    "EmptyProgressReporter",
    "SimpleProgressReporter",
    "RichProgressReporter",
    "LoggingConfig",
    "create_reporter",
]


def create_reporter(reporter_name: str, **kwargs: Any) -> ProgressReporter:
    return registry.create(reporter_name, **kwargs)
