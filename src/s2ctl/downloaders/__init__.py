"""Transport downloaders.

- HTTPDownloader: HTTP/HTTPS downloads for the catalog store
- S3Downloader: S3 downloads for the tile store

Both retry a bounded number of times and report byte progress on the
event bus.
"""

from s2ctl.downloaders.base import Downloader
from s2ctl.downloaders.http import HTTPDownloader
from s2ctl.downloaders.s3 import S3Downloader, create_s3_client, parse_s3_uri
from s2ctl.registry import Registry

registry = Registry[Downloader](name="downloader")
registry.register("http", HTTPDownloader)
registry.register("s3", S3Downloader)

__all__ = [
    "Downloader",
    "HTTPDownloader",
    "S3Downloader",
    "create_s3_client",
    "parse_s3_uri",
]
