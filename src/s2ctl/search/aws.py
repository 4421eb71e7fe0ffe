import json
import logging
from datetime import date, timedelta
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from s2ctl.auth import AnonymousAuthenticator
from s2ctl.dates import to_date
from s2ctl.downloaders import create_s3_client
from s2ctl.errors import ConfigurationError, SearchError
from s2ctl.model import ProductDescriptor, SearchConfiguration
from s2ctl.search.base import SearchStrategy
from s2ctl.tiles import split_tile_id

log = logging.getLogger(__name__)

# Constants
DEFAULT_BUCKET = "sentinel-s2-l1c"
DEFAULT_REGION = "eu-central-1"
TILE_INFO = "tileInfo.json"


def tile_prefix(tile_id: str, day: date) -> str:
    """Object prefix holding the acquisitions of a tile on one day.

    Example:
        >>> tile_prefix("31TCJ", date(2024, 5, 3))
        'tiles/31/T/CJ/2024/5/3/'
    """
    zone, band, square = split_tile_id(tile_id)
    return f"tiles/{zone}/{band}/{square}/{day.year}/{day.month}/{day.day}/"


def _clearer(product: ProductDescriptor, other: ProductDescriptor) -> bool:
    if product.cloud_percentage is None:
        return False
    return other.cloud_percentage is None or product.cloud_percentage < other.cloud_percentage


class AwsSearch(SearchStrategy):
    """Walks the tile layout of the public Sentinel-2 bucket, no credentials needed."""

    def __init__(
        self,
        config: SearchConfiguration,
        client: Any = None,
        bucket: str = DEFAULT_BUCKET,
        region_name: str = DEFAULT_REGION,
        today: date | None = None,
    ):
        super().__init__(config)
        self.client = client or create_s3_client(AnonymousAuthenticator(), region_name)
        self.bucket = bucket
        self.today = today

    def sensing_dates(self) -> list[date]:
        """Calendar days of the sensing window, both bounds included."""
        first = to_date(self.config.start, self.today)
        last = to_date(self.config.end, self.today)
        return [first + timedelta(days=n) for n in range((last - first).days + 1)]

    def execute(self) -> list[ProductDescriptor]:
        if not self.config.tiles:
            raise ConfigurationError("The tile store search requires at least one tile identifier")
        days = self.sensing_dates()
        log.info(
            "Searching s3://%s for %d tile(s) between %s and %s",
            self.bucket,
            len(self.config.tiles),
            days[0],
            days[-1],
        )
        # a product spanning several tiles keeps its clearest tile
        found: dict[str, ProductDescriptor] = {}
        for tile_id in sorted(self.config.tiles):
            for day in days:
                for product in self._products_on(tile_id, day):
                    known = found.get(product.name)
                    if known is None or _clearer(product, known):
                        found[product.name] = product

        products = sorted(
            (product for product in found.values() if self._accepts(product)),
            key=lambda p: (p.sensing_time.isoformat() if p.sensing_time else "", p.name),
        )
        log.info("Found %d products", len(products))
        return products[: self.config.limit]

    def _accepts(self, product: ProductDescriptor) -> bool:
        if product.cloud_percentage is not None and product.cloud_percentage > self.config.cloud_percentage:
            log.debug("Skipping %s, cloud coverage %.2f%%", product.name, product.cloud_percentage)
            return False
        if self.config.relative_orbit is not None and product.relative_orbit != self.config.relative_orbit:
            log.debug("Skipping %s, relative orbit %s", product.name, product.relative_orbit)
            return False
        return True

    def _products_on(self, tile_id: str, day: date) -> list[ProductDescriptor]:
        prefix = tile_prefix(tile_id, day)
        products = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
                for sequence in page.get("CommonPrefixes", []):
                    product = self._read_tile_info(sequence["Prefix"] + TILE_INFO)
                    if product is not None:
                        products.append(product)
        except (ClientError, BotoCoreError) as e:
            raise SearchError(f"Listing s3://{self.bucket}/{prefix} failed: {e}") from e
        return products

    def _read_tile_info(self, key: str) -> ProductDescriptor | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            info = json.loads(response["Body"].read())
        except ClientError as e:
            log.warning("Cannot read s3://%s/%s: %s", self.bucket, key, e)
            return None
        except ValueError as e:
            log.warning("Invalid tile info s3://%s/%s: %s", self.bucket, key, e)
            return None
        try:
            name = info.get("productName")
            cloud = info.get("cloudyPixelPercentage")
            cloud = None if cloud is None else float(cloud)
        except (AttributeError, TypeError, ValueError) as e:
            log.warning("Invalid tile info s3://%s/%s: %s", self.bucket, key, e)
            return None
        if not name:
            log.warning("Tile info s3://%s/%s has no product name", self.bucket, key)
            return None
        return ProductDescriptor(name=name, cloud_percentage=cloud)
