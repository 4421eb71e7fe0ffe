import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from s2ctl.auth import Authenticator
from s2ctl.downloaders.base import Downloader
from s2ctl.model import ProgressEventType
from s2ctl.progress.events import emit_event

log = logging.getLogger(__name__)


def create_s3_client(authenticator: Authenticator, region_name: str | None = None, proxy_url: str | None = None) -> Any:
    """boto3 S3 client, unsigned when the authenticator is anonymous."""
    options: dict[str, Any] = {}
    if authenticator.anonymous:
        options["signature_version"] = UNSIGNED
    if proxy_url:
        options["proxies"] = {"http": proxy_url, "https": proxy_url}
    kwargs: dict[str, Any] = {"config": Config(**options)}
    if region_name:
        kwargs["region_name"] = region_name
    session = authenticator.auth_session
    if session is not None and hasattr(session, "client"):
        return session.client("s3", **kwargs)
    return boto3.client("s3", **kwargs)


def parse_s3_uri(uri: str) -> tuple[str, str]:
    """
    Parse S3 URI into bucket and key.

    Args:
        uri: S3 URI in format s3://bucket/key/path

    Returns:
        Tuple of (bucket_name, object_key)
    """
    if not uri.startswith("s3://"):
        raise ValueError(f"Invalid S3 URI format: {uri}")
    parts = uri[5:].split("/", 1)
    if len(parts) != 2 or not parts[1]:
        raise ValueError(f"Invalid S3 URI format: {uri}")
    return parts[0], parts[1]


class S3Downloader(Downloader):
    """S3 downloader with retries and progress reporting."""

    def __init__(
        self,
        authenticator: Authenticator,
        max_retries: int = 3,
        chunk_size: int = 8192,
        region_name: str | None = None,
        proxy_url: str | None = None,
    ):
        """
        Initialize S3 downloader.

        Args:
            authenticator: Authenticator instance, anonymous for public buckets
            max_retries: Maximum number of download attempts
            chunk_size: Size of chunks to read when downloading
            region_name: AWS region of the bucket
            proxy_url: Optional proxy for every S3 request
        """
        super().__init__(authenticator)
        self.max_retries = max_retries
        self.chunk_size = chunk_size
        self.region_name = region_name
        self.proxy_url = proxy_url
        self.s3_client = None

    def init(self, client: Any = None, **kwargs) -> None:
        if not self.auth.ensure_authenticated():
            raise RuntimeError("Failed to authenticate for S3 access")
        self.s3_client = client or create_s3_client(self.auth, self.region_name, self.proxy_url)
        log.debug("Initialized S3 client (anonymous=%s)", self.auth.anonymous)

    def list_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        """Every object key below the prefix."""
        if self.s3_client is None:
            self.init()
        paginator = self.s3_client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for item in page.get("Contents", []):
                yield item["Key"]

    def download(
        self,
        uri: str,
        destination: Path,
        item_id: str,
    ) -> bool:
        """
        Download file from S3 URI with retries and progress reporting.

        Args:
            uri: S3 URI (e.g., s3://bucket/path/to/file)
            destination: Local path to save the downloaded file
            item_id: Identifier for progress tracking

        Returns:
            True if download succeeded, False otherwise
        """
        if self.s3_client is None:
            self.init()

        error = ""
        task_id = f"download_{item_id}"

        log.debug("Downloading S3 resource %s to: %s", uri, destination)
        emit_event(ProgressEventType.TASK_CREATED, task_id=task_id, description=destination.name)

        try:
            bucket, key = parse_s3_uri(uri)
        except ValueError as e:
            log.error("Invalid S3 URI: %s", e)
            emit_event(
                ProgressEventType.TASK_COMPLETED,
                task_id=task_id,
                success=False,
                description=f"invalid URI: {e}",
            )
            return False

        for attempt in range(self.max_retries):
            try:
                log.debug("Downloading s3://%s/%s (attempt %s/%s)", bucket, key, attempt + 1, self.max_retries)
                response = self.s3_client.get_object(Bucket=bucket, Key=key)
                total_size = response.get("ContentLength")
                if total_size:
                    emit_event(ProgressEventType.TASK_DURATION, task_id=task_id, duration=total_size)

                downloaded_bytes = 0
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(destination, "wb") as f:
                    for chunk in response["Body"].iter_chunks(chunk_size=self.chunk_size):
                        if chunk:
                            f.write(chunk)
                            downloaded_bytes += len(chunk)
                            emit_event(ProgressEventType.TASK_PROGRESS, task_id=task_id, advance=len(chunk))

                log.debug("Successfully downloaded s3://%s/%s (%d bytes)", bucket, key, downloaded_bytes)
                emit_event(ProgressEventType.TASK_COMPLETED, task_id=task_id, success=True)
                return True

            except NoCredentialsError:
                log.error("No AWS credentials found on attempt %s", attempt + 1)
                error = "no credentials"
                break
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                log.debug("S3 client error on attempt %s: %s - %s", attempt + 1, error_code, e)
                error = f"client error: {error_code}"
                if error_code in ("404", "NoSuchKey"):
                    log.error("Object not found: s3://%s/%s", bucket, key)
                    break
            except BotoCoreError as e:
                log.debug("BotoCore error on attempt %s: %s", attempt + 1, e)
                error = f"botocore error: {e}"
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
        """Drop the client reference, boto3 clients hold no open handles."""
        if self.s3_client:
            self.s3_client = None
            log.debug("S3 client closed")
