import json
import logging
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError

from s2ctl.downloaders import S3Downloader
from s2ctl.errors import TransferError
from s2ctl.model import ProductDescriptor
from s2ctl.stores.base import ProductSource
from s2ctl.tiles import normalize_tile_id

log = logging.getLogger(__name__)

# Constants
PRODUCT_INFO = "productInfo.json"


def tile_id_from_path(path: str) -> str:
    """Tile id of a tile path such as ``tiles/31/T/CJ/2024/5/3/0``."""
    parts = path.strip("/").split("/")
    if len(parts) < 4 or parts[0] != "tiles":
        raise TransferError(f"Unexpected tile path: '{path}'")
    return normalize_tile_id("".join(parts[1:4]))


class AwsSource(ProductSource):
    """Products of the tile store, addressed by the fields of their name."""

    def __init__(self, downloader: S3Downloader, bucket: str, tiles=()):
        super().__init__(downloader, tiles)
        self.downloader: S3Downloader = downloader
        self.bucket = bucket

    def locate(self, product: ProductDescriptor) -> str:
        sensing = product.sensing_time
        if sensing is None:
            raise TransferError(f"Product name {product.name} does not follow the compact naming convention")
        return f"products/{sensing.year}/{sensing.month}/{sensing.day}/{product.name}"

    def fetch(self, product: ProductDescriptor, destination: Path) -> Path:
        location = self.locate(product)
        target = destination / product.name
        info_file = target / PRODUCT_INFO
        log.info("Downloading %s", product.name)
        if not self.downloader.download(f"s3://{self.bucket}/{location}/{PRODUCT_INFO}", info_file, product.name):
            raise TransferError(f"Product {product.name} not found in s3://{self.bucket}/{location}")
        try:
            info = json.loads(info_file.read_text(encoding="utf-8"))
            tile_paths = [str(tile["path"]) for tile in info.get("tiles") or [] if tile.get("path")]
        except (OSError, ValueError, AttributeError, TypeError, KeyError) as e:
            raise TransferError(f"Invalid product info for {product.name}: {e!r}") from e

        selected = [(tile_id_from_path(path), path) for path in tile_paths]
        selected = [(tile_id, path) for tile_id, path in selected if self.accepts_tile(tile_id)]
        if not selected:
            raise TransferError(f"Product {product.name} has none of the requested tiles")

        failures = []
        for tile_id, path in selected:
            prefix = path.rstrip("/") + "/"
            log.debug("Downloading tile %s of %s", tile_id, product.name)
            try:
                keys = list(self.downloader.list_keys(self.bucket, prefix))
            except (ClientError, BotoCoreError) as e:
                raise TransferError(f"Listing s3://{self.bucket}/{prefix} failed: {e}") from e
            for key in keys:
                relative = key[len(prefix) :]
                if not relative or relative.endswith("/"):
                    continue
                item_id = f"{product.name}/{tile_id}/{relative}"
                if not self.downloader.download(f"s3://{self.bucket}/{key}", target / tile_id / relative, item_id):
                    failures.append(key)
        if failures:
            raise TransferError(f"{len(failures)} file(s) of {product.name} failed: {', '.join(failures)}")
        return target
