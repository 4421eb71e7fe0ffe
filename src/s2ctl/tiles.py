"""Sentinel-2 tile grid index.

The grid maps each tile identifier (MGRS cell such as ``31TCJ``) to the
longitude/latitude rectangle enclosing the tile footprint. A grid is built once,
either from the dataset bundled with the package or from the tile KML published
by ESA, and is read-only afterwards.
"""

import gzip
import logging
import re
import xml.etree.ElementTree as ElementTree
from collections.abc import Iterable, Iterator, Mapping
from importlib.resources import files
from pathlib import Path
from types import MappingProxyType
from typing import NamedTuple

from s2ctl.errors import ConfigurationError, ParseError, UnknownTileError

log = logging.getLogger(__name__)

# Constants
BUNDLED_GRID = "tilemap.dat.gz"
TILE_ID_PATTERN = re.compile(r"^T?(\d{1,2})([C-HJ-NP-X])([A-HJ-NP-Z]{2})$")


class TileExtent(NamedTuple):
    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def union(self, other: "TileExtent") -> "TileExtent":
        return TileExtent(
            min(self.min_lon, other.min_lon),
            min(self.min_lat, other.min_lat),
            max(self.max_lon, other.max_lon),
            max(self.max_lat, other.max_lat),
        )

    def intersects(self, other: "TileExtent") -> bool:
        return not (
            other.min_lon > self.max_lon
            or other.max_lon < self.min_lon
            or other.min_lat > self.max_lat
            or other.max_lat < self.min_lat
        )

    def contains(self, lon: float, lat: float) -> bool:
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat


def normalize_tile_id(tile_id: str) -> str:
    """Upper-case tile id without the ``T`` prefix used in product names."""
    value = tile_id.strip().upper()
    match = TILE_ID_PATTERN.match(value)
    if not match:
        return value
    zone, band, square = match.groups()
    return f"{int(zone):02d}{band}{square}"


def split_tile_id(tile_id: str) -> tuple[int, str, str]:
    """Split a tile id into UTM zone, latitude band and 100km square.

    Args:
        tile_id (str): tile identifier, e.g. ``31TCJ`` or ``T31TCJ``

    Raises:
        ParseError: if the identifier does not follow the MGRS naming scheme

    Returns:
        tuple[int, str, str]: e.g. ``(31, "T", "CJ")``
    """
    match = TILE_ID_PATTERN.match(tile_id.strip().upper())
    if not match:
        raise ParseError(f"Invalid tile identifier: '{tile_id}'")
    zone, band, square = match.groups()
    return int(zone), band, square


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse_coordinates(text: str | None) -> Iterator[tuple[float, float]]:
    for token in (text or "").split():
        parts = token.split(",")
        if len(parts) < 2:
            raise ParseError(f"Invalid KML coordinate: '{token}'")
        try:
            yield float(parts[0]), float(parts[1])
        except ValueError:
            raise ParseError(f"Invalid KML coordinate: '{token}'") from None


def _placemark_extent(placemark: ElementTree.Element) -> TileExtent | None:
    polygons = [el for el in placemark.iter() if _local_name(el.tag) == "Polygon"]
    # placemarks may also carry a center point, only polygon rings define the footprint
    scopes = polygons or [placemark]
    points = [
        point
        for scope in scopes
        for el in scope.iter()
        if _local_name(el.tag) == "coordinates"
        for point in _parse_coordinates(el.text)
    ]
    if not points:
        return None
    lons = [lon for lon, _ in points]
    lats = [lat for _, lat in points]
    return TileExtent(min(lons), min(lats), max(lons), max(lats))


class TileGrid(Mapping[str, TileExtent]):
    """Immutable tile id -> extent mapping."""

    def __init__(self, extents: Mapping[str, TileExtent]):
        self._extents = MappingProxyType(dict(extents))

    def __getitem__(self, tile_id: str) -> TileExtent:
        return self._extents[normalize_tile_id(tile_id)]

    def __contains__(self, tile_id: object) -> bool:
        return isinstance(tile_id, str) and normalize_tile_id(tile_id) in self._extents

    def __iter__(self) -> Iterator[str]:
        return iter(self._extents)

    def __len__(self) -> int:
        return len(self._extents)

    @property
    def count(self) -> int:
        return len(self._extents)

    # ============================================================================
    # Loading
    # ============================================================================

    @classmethod
    def read(cls, lines: Iterable[str]) -> "TileGrid":
        """Parse the text format ``TILE min_lon min_lat max_lon max_lat``, one tile per line."""
        extents = {}
        for number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) != 5:
                raise ParseError(f"Invalid tile grid line {number}: '{line}'")
            try:
                extent = TileExtent(*(float(value) for value in parts[1:]))
            except ValueError:
                raise ParseError(f"Invalid tile grid line {number}: '{line}'") from None
            extents[normalize_tile_id(parts[0])] = extent
        return cls(extents)

    @classmethod
    def from_bundled(cls) -> "TileGrid":
        resource = files("s2ctl") / "data" / BUNDLED_GRID
        with resource.open("rb") as handle, gzip.open(handle, "rt", encoding="utf-8") as reader:
            return cls.read(reader)

    @classmethod
    def from_kml(cls, path: Path) -> "TileGrid":
        """Build the grid from a KML file of named tile placemarks.

        The file is streamed, so the full ESA tiling KML can be used directly.

        Args:
            path (Path): path to the KML file

        Raises:
            ConfigurationError: if the file does not exist
            ParseError: if the file is not valid KML

        Returns:
            TileGrid: grid with one entry per named placemark
        """
        if not path.exists() or not path.is_file():
            raise ConfigurationError(f"Resource not found: tile shape file '{path}' does not exist or is not a file")
        extents = {}
        try:
            for _, element in ElementTree.iterparse(path, events=("end",)):
                if _local_name(element.tag) != "Placemark":
                    continue
                name = next(
                    (child.text for child in element if _local_name(child.tag) == "name" and child.text),
                    None,
                )
                extent = _placemark_extent(element)
                if name and extent:
                    tile_id = normalize_tile_id(name)
                    previous = extents.get(tile_id)
                    extents[tile_id] = previous.union(extent) if previous else extent
                element.clear()
        except ElementTree.ParseError as e:
            raise ParseError(f"Invalid KML file '{path}': {e}") from None
        return cls(extents)

    @classmethod
    def load(cls, shape_file: Path | None = None) -> "TileGrid":
        if shape_file is None:
            log.info("Loading S2 tiles extents")
            grid = cls.from_bundled()
            log.info("%d tile extents loaded", grid.count)
        else:
            log.info("Reading S2 tiles extents from %s", shape_file)
            grid = cls.from_kml(shape_file)
            log.info("%d tiles found", grid.count)
        return grid

    # ============================================================================
    # Queries
    # ============================================================================

    def bounding_box(self, tile_ids: Iterable[str]) -> TileExtent:
        """Smallest rectangle covering the extents of all the given tiles.

        Args:
            tile_ids (Iterable[str]): tile identifiers

        Raises:
            ConfigurationError: when no tile is given
            UnknownTileError: when any of the tiles is not part of the grid

        Returns:
            TileExtent: the union rectangle
        """
        ids = [normalize_tile_id(tile_id) for tile_id in tile_ids]
        if not ids:
            raise ConfigurationError("At least one tile identifier is required for a bounding box")
        missing = sorted({tile_id for tile_id in ids if tile_id not in self._extents})
        if missing:
            raise UnknownTileError(missing)
        box = self._extents[ids[0]]
        for tile_id in ids[1:]:
            box = box.union(self._extents[tile_id])
        return box

    def intersecting(self, extent: TileExtent) -> list[str]:
        return sorted(tile_id for tile_id, tile in self._extents.items() if tile.intersects(extent))

    def __repr__(self) -> str:
        return f"TileGrid(count={self.count})"
