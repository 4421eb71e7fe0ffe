import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from s2ctl.progress import ProgressReporter

DEFAULT_SUPPRESSIONS = {
    "warning": ["urllib3", "requests", "botocore", "boto3", "s3transfer"],
}


def setup_logging(
    log_level: str,
    reporter_cls: type[ProgressReporter] | None,
    suppressions: dict[str, list[str]] | None = None,
    log_file: Path | None = None,
) -> None:
    """Configure logging, optionally using the reporter's configuration.

    Args:
        log_level (str): which log level (e.g., DEBUG, INFO, WARNING).
        reporter_cls (type[ProgressReporter] | None): Optional reporter class to get the config from.
        suppressions (dict[str, list[str]] | None, optional): Additional user-provided suppressions. Defaults to None.
        log_file (Path | None, optional): Run log, written next to the products. Defaults to None.
    """
    config = reporter_cls.logging_config() if reporter_cls else ProgressReporter.logging_config()
    suppressions = suppressions or DEFAULT_SUPPRESSIONS
    handlers = list(config.handlers)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(config.format))
        handlers.append(file_handler)
    # apply config
    logging.basicConfig(
        level=log_level.upper(),
        format=config.format,
        handlers=handlers,
        force=True,  # reconfigure if already configured
    )
    # apply suppressions by level
    for level_name, loggers in suppressions.items():
        suppress_level = getattr(logging, level_name.upper())
        for logger_name in loggers:
            logging.getLogger(logger_name).setLevel(suppress_level)


def split_values(values: Iterable[str] | None) -> list[str]:
    """Flatten repeatable options whose values may hold several comma or space separated items."""
    return [item for value in values or [] for item in value.replace(",", " ").split()]


def read_lines(path: Path) -> Iterator[str]:
    """Non-empty, non-comment lines of a list file."""
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line and not line.startswith("#"):
                yield line
