import logging
import re
from pathlib import Path, PurePosixPath

import requests

from s2ctl.downloaders import HTTPDownloader
from s2ctl.errors import TransferError
from s2ctl.model import ProductDescriptor
from s2ctl.stores.base import ProductSource

log = logging.getLogger(__name__)

# Constants
ODATA_PATH = "odata/v1"
GRANULE_FOLDER = "GRANULE"
GRANULE_TILE_PATTERN = re.compile(r"_T(\d{2}[A-Z]{3})(?:_|$)")


def odata_base(search_url: str) -> str:
    """Product endpoint root next to a search endpoint.

    Example:
        >>> odata_base("https://scihub.copernicus.eu/apihub/search")
        'https://scihub.copernicus.eu/apihub/odata/v1'
    """
    root = search_url.rstrip("/")
    if root.endswith("/search"):
        root = root[: -len("/search")]
    return f"{root}/{ODATA_PATH}"


def granule_tile(folder_name: str) -> str | None:
    """Tile id embedded in a granule folder name, e.g. ``L1C_T31TCJ_A045678_20240503T103021``."""
    match = GRANULE_TILE_PATTERN.search(folder_name)
    return match.group(1) if match else None


class SciHubSource(ProductSource):
    """Products of the catalog store, addressed by their catalog id."""

    def __init__(
        self,
        downloader: HTTPDownloader,
        odata_url: str,
        unpacked: bool = False,
        tiles=(),
    ):
        super().__init__(downloader, tiles)
        self.downloader: HTTPDownloader = downloader
        self.odata_url = odata_url.rstrip("/")
        self.unpacked = unpacked

    def locate(self, product: ProductDescriptor) -> str:
        if not product.uuid:
            raise TransferError(f"Product {product.name} has no catalog id, cannot download it from the catalog")
        return f"{self.odata_url}/Products('{product.uuid}')"

    def fetch(self, product: ProductDescriptor, destination: Path) -> Path:
        location = self.locate(product)
        if not self.unpacked:
            target = destination / f"{product.name}.zip"
            log.info("Downloading %s", target.name)
            if not self.downloader.download(f"{location}/$value", target, item_id=product.name):
                raise TransferError(f"Download of {product.name} failed")
            return target

        target = destination / product.safe_name
        log.info("Downloading %s (unpacked)", target.name)
        failures = self._walk(f"{location}/Nodes('{product.safe_name}')", target, PurePosixPath(), product.name)
        if failures:
            raise TransferError(f"{len(failures)} file(s) of {product.name} failed: {', '.join(failures)}")
        return target

    # ============================================================================
    # Node tree traversal
    # ============================================================================

    def _skip(self, path: PurePosixPath) -> bool:
        if len(path.parts) != 2 or path.parts[0] != GRANULE_FOLDER:
            return False
        tile_id = granule_tile(path.name)
        return tile_id is not None and not self.accepts_tile(tile_id)

    def _walk(self, node_url: str, local_dir: Path, relative: PurePosixPath, item_id: str) -> list[str]:
        where = str(relative) if relative.parts else item_id
        try:
            listing = self.downloader.get_json(f"{node_url}/Nodes?$format=json")
            nodes = [(node["Name"], int(node.get("ChildrenNumber") or 0)) for node in listing["d"]["results"]]
        except (requests.exceptions.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
            raise TransferError(f"Cannot list {where}: {e!r}") from e
        try:
            local_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise TransferError(f"Cannot create {local_dir}: {e}") from e

        failures = []
        for name, children in nodes:
            child_url = f"{node_url}/Nodes('{name}')"
            path = relative / name
            if children:
                if self._skip(path):
                    log.debug("Skipping granule %s, tile not requested", name)
                    continue
                failures.extend(self._walk(child_url, local_dir / name, path, item_id))
            elif not self.downloader.download(f"{child_url}/$value", local_dir / name, item_id=f"{item_id}/{path}"):
                failures.append(str(path))
        return failures
