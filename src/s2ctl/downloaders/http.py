import logging
from pathlib import Path

import requests

from s2ctl.auth import Authenticator
from s2ctl.config import ProxySettings
from s2ctl.downloaders.base import Downloader
from s2ctl.model import ProgressEventType
from s2ctl.net import create_session
from s2ctl.progress.events import emit_event

log = logging.getLogger(__name__)

# HTTP downloader configuration defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_CHUNK_SIZE = 8192  # 8KB
DEFAULT_TIMEOUT_SECONDS = 30


class HTTPDownloader(Downloader):
    """HTTP downloader with authentication, retries, and progress reporting."""

    def __init__(
        self,
        authenticator: Authenticator,
        max_retries: int = DEFAULT_MAX_RETRIES,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
        proxy: ProxySettings | None = None,
    ):
        super().__init__(authenticator)
        self.max_retries = max_retries
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.proxy = proxy
        self.session: requests.Session | None = None

    def init(self, session: requests.Session | None = None, **kwargs) -> None:
        self.session = session or create_session(self.proxy)

    def get_json(self, uri: str) -> dict:
        """Fetch a JSON document with the same retry policy as file transfers.

        Raises:
            requests.exceptions.RequestException: once every attempt failed
        """
        if self.session is None:
            self.init()
        last_error: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                response = self.session.get(uri, headers=self.auth.auth_headers, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
            except requests.exceptions.RequestException as e:
                log.debug("Request error fetching %s on attempt %s: %s", uri, attempt + 1, e)
                last_error = e
        raise last_error or requests.exceptions.RequestException(f"No attempt made for {uri}")

    def download(
        self,
        uri: str,
        destination: Path,
        item_id: str,
    ) -> bool:
        """
        Download file from HTTP URL with retries and progress reporting.
        """
        if self.session is None:
            self.init()
        error = ""
        task_id = f"download_{item_id}"

        log.debug("Downloading resource %s into: %s", uri, destination)
        emit_event(ProgressEventType.TASK_CREATED, task_id=task_id, description=destination.name)
        for attempt in range(self.max_retries):
            try:
                if not self.auth.ensure_authenticated():
                    log.error("Authentication failed on attempt %s", attempt + 1)
                    continue

                log.debug("Downloading %s (attempt %s/%s)", uri, attempt + 1, self.max_retries)
                response = self.session.get(uri, headers=self.auth.auth_headers, stream=True, timeout=self.timeout)

                if response.status_code == 401:
                    log.warning("Authentication failed (401), refreshing credentials")
                    self.auth.ensure_authenticated(refresh=True)
                response.raise_for_status()

                if "Content-Length" in response.headers:
                    total_size = int(response.headers["Content-Length"])
                    emit_event(ProgressEventType.TASK_DURATION, task_id=task_id, duration=total_size)

                downloaded_bytes = 0
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(destination, "wb") as f:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            f.write(chunk)
                            downloaded_bytes += len(chunk)
                            emit_event(ProgressEventType.TASK_PROGRESS, task_id=task_id, advance=len(chunk))

                log.debug("Successfully downloaded %s (%s bytes)", uri, downloaded_bytes)
                emit_event(ProgressEventType.TASK_COMPLETED, task_id=task_id, success=True)
                return True

            except requests.exceptions.Timeout:
                log.debug("Timeout downloading %s on attempt %s", uri, attempt + 1)
                error = "timed out"
            except requests.exceptions.RequestException as e:
                log.debug("Request error downloading %s on attempt %s: %s", uri, attempt + 1, e)
                error = "exception request"
            except OSError as e:
                log.warning("Could not write %s on attempt %s: %s", destination, attempt + 1, e)
                error = str(e)
        emit_event(
            ProgressEventType.TASK_COMPLETED,
            task_id=task_id,
            success=False,
            description=f"failed: {error}",
        )
        return False

    def close(self) -> None:
        if self.session:
            self.session.close()
            self.session = None
