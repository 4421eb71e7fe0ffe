from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from s2ctl.auth import Authenticator


class Downloader(ABC):
    """Abstract base class for downloaders."""

    def __init__(self, authenticator: Authenticator) -> None:
        """Initialize downloader.

        Args:
            authenticator (Authenticator): Authenticator instance for credential management
        """
        super().__init__()
        self.auth = authenticator

    @abstractmethod
    def init(self, **kwargs: Any) -> None:
        """Prepare connections, called once before the first transfer.

        Args:
            **kwargs (Any): Downloader specific options
        """
        ...

    @abstractmethod
    def download(
        self,
        uri: str,
        destination: Path,
        item_id: str,
    ) -> bool:
        """Download a single file from URI to destination.

        Args:
            uri (str): URI to download from
            destination (Path): Local file path to save to
            item_id (str): Product identifier for progress tracking

        Returns:
            bool: True if download succeeded, False once retries are exhausted
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close downloader and release resources."""
        ...
