from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from s2ctl.downloaders import Downloader
from s2ctl.model import ProductDescriptor
from s2ctl.tiles import normalize_tile_id


class ProductSource(ABC):
    """
    Abstract base class for the remote stores products are retrieved from.

    A source knows how a product is addressed (``locate``) and how its files
    are laid out once transferred (``fetch``).
    """

    def __init__(self, downloader: Downloader, tiles: Iterable[str] = ()):
        self.downloader = downloader
        self.tiles = frozenset(normalize_tile_id(tile_id) for tile_id in tiles)

    def open(self) -> None:
        self.downloader.init()

    def close(self) -> None:
        self.downloader.close()

    def accepts_tile(self, tile_id: str) -> bool:
        """True when no tile filter is set or the tile is part of it."""
        return not self.tiles or normalize_tile_id(tile_id) in self.tiles

    @abstractmethod
    def locate(self, product: ProductDescriptor) -> str:
        """Remote address of the product.

        Raises:
            TransferError: when the product cannot be addressed in this store
        """
        ...

    @abstractmethod
    def fetch(self, product: ProductDescriptor, destination: Path) -> Path:
        """Transfer the product below the destination folder.

        Args:
            product (ProductDescriptor): product to retrieve
            destination (Path): output folder, already created

        Raises:
            TransferError: when any file of the product could not be retrieved

        Returns:
            Path: the local product, a directory or an archive
        """
        ...
