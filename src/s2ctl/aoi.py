import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Union, cast

from geojson_pydantic import Feature, FeatureCollection
from geojson_pydantic.geometries import MultiPolygon as GeoJSONMultiPolygon
from geojson_pydantic.geometries import Polygon as GeoJSONPolygon
from pydantic import TypeAdapter, ValidationError
from shapely import GeometryCollection, Polygon, from_geojson, from_wkt
from shapely.errors import GEOSException
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from s2ctl.errors import ConfigurationError, ParseError
from s2ctl.tiles import TileExtent, TileGrid

log = logging.getLogger(__name__)

GeoJSONArea = Union[Feature, FeatureCollection, GeoJSONPolygon, GeoJSONMultiPolygon]
GEOJSON_SUFFIXES = {".json", ".geojson"}

_geojson_adapter: TypeAdapter = TypeAdapter(GeoJSONArea)


def _as_polygon(geometry: BaseGeometry) -> Polygon:
    # collections are merged first, anything that is still not a polygon is replaced by its hull
    if hasattr(geometry, "geoms"):
        geometry = unary_union(list(cast(GeometryCollection, geometry).geoms))
    if not isinstance(geometry, Polygon):
        log.warning("Area is a %s, using its convex hull", geometry.geom_type)
        geometry = geometry.convex_hull
    if not isinstance(geometry, Polygon) or geometry.is_empty:
        raise ParseError("Invalid area: geometry does not describe a polygon")
    return geometry


class AreaOfInterest:
    """Ordered (longitude, latitude) vertices of the search polygon.

    Vertices are kept exactly as given: appending never closes the ring, so an
    area built from N pairs has N vertices. A usable polygon repeats its first
    vertex at the end (at least four vertices), an unset area has none.
    """

    def __init__(self, points: Iterable[tuple[float, float]] = ()):
        self._points: list[tuple[float, float]] = []
        self._frozen = False
        for lon, lat in points:
            self.append(lon, lat)

    def append(self, lon: float, lat: float) -> None:
        if self._frozen:
            raise ConfigurationError("Area of interest cannot be modified once handed to a search")
        self._points.append((float(lon), float(lat)))

    def freeze(self) -> "AreaOfInterest":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def points(self) -> tuple[tuple[float, float], ...]:
        return tuple(self._points)

    @property
    def num_points(self) -> int:
        return len(self._points)

    @property
    def is_empty(self) -> bool:
        return not self._points

    @property
    def is_closed(self) -> bool:
        return len(self._points) > 1 and self._points[0] == self._points[-1]

    # ============================================================================
    # Constructors
    # ============================================================================

    @classmethod
    def from_pairs(cls, values: Iterable[str]) -> "AreaOfInterest":
        """Build an area from ``"lon,lat"`` strings, several pairs may share one value.

        Args:
            values (Iterable[str]): pairs such as ``["1.2,43.5", "1.5,43.5 1.5,43.9"]``

        Raises:
            ParseError: when a pair is not two comma separated numbers

        Returns:
            AreaOfInterest: area with one vertex per pair, in the given order
        """
        area = cls()
        for value in values:
            for pair in value.split():
                lon, sep, lat = pair.partition(",")
                try:
                    if not sep:
                        raise ValueError(pair)
                    area.append(float(lon), float(lat))
                except ValueError:
                    raise ParseError(f"Invalid coordinate pair: '{pair}' (expected lon,lat)") from None
        return area

    @classmethod
    def from_polygon(cls, polygon: Polygon) -> "AreaOfInterest":
        return cls((x, y) for x, y, *_ in polygon.exterior.coords)

    @classmethod
    def from_wkt(cls, text: str) -> "AreaOfInterest":
        try:
            geometry = from_wkt(text.strip())
        except (GEOSException, TypeError, AttributeError) as e:
            raise ParseError(f"Invalid WKT: {e}") from None
        if geometry is None or geometry.is_empty:
            raise ParseError("Invalid WKT: empty geometry")
        return cls.from_polygon(_as_polygon(geometry))

    @classmethod
    def from_geojson(cls, data: dict) -> "AreaOfInterest":
        try:
            model = _geojson_adapter.validate_python(data)
            geometry = from_geojson(model.model_dump_json())
        except (ValidationError, GEOSException) as e:
            raise ParseError(f"Invalid GeoJSON area: {e}") from None
        return cls.from_polygon(_as_polygon(geometry))

    @classmethod
    def from_file(cls, path: Path) -> "AreaOfInterest":
        """Read an area file, GeoJSON for ``.json``/``.geojson`` files and WKT otherwise."""
        if not path.exists() or not path.is_file():
            raise ConfigurationError(f"Resource not found: area file '{path}' does not exist or is not a file")
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in GEOJSON_SUFFIXES:
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                raise ParseError(f"Invalid GeoJSON in '{path}': {e}") from None
            return cls.from_geojson(data)
        return cls.from_wkt(text)

    @classmethod
    def from_extent(cls, extent: TileExtent) -> "AreaOfInterest":
        """Rectangle covering the extent, as SW, SE, NE, NW and the closing SW corner."""
        return cls(
            [
                (extent.min_lon, extent.min_lat),
                (extent.max_lon, extent.min_lat),
                (extent.max_lon, extent.max_lat),
                (extent.min_lon, extent.max_lat),
                (extent.min_lon, extent.min_lat),
            ]
        )

    # ============================================================================
    # Conversions
    # ============================================================================

    def bounds(self) -> TileExtent:
        if self.is_empty:
            raise ConfigurationError("Area of interest is empty")
        lons = [lon for lon, _ in self._points]
        lats = [lat for _, lat in self._points]
        return TileExtent(min(lons), min(lats), max(lons), max(lats))

    def to_polygon(self) -> Polygon:
        if self.num_points < 3:
            raise ConfigurationError(f"Area of interest needs at least 3 vertices, got {self.num_points}")
        return Polygon(self._points)

    def to_wkt(self) -> str:
        """WKT polygon with the ring closed, vertices printed as given."""
        if self.num_points < 3:
            raise ConfigurationError(f"Area of interest needs at least 3 vertices, got {self.num_points}")
        ring = list(self._points)
        if not self.is_closed:
            ring.append(ring[0])
        coords = ",".join(f"{lon} {lat}" for lon, lat in ring)
        return f"POLYGON(({coords}))"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AreaOfInterest):
            return NotImplemented
        return self._points == other._points

    def __repr__(self) -> str:
        return f"AreaOfInterest(points={self.num_points})"


def resolve_area(
    area: list[str] | None = None,
    area_file: Path | None = None,
    tiles: Iterable[str] = (),
    shape_file: Path | None = None,
    grid: TileGrid | None = None,
) -> tuple[AreaOfInterest, TileGrid | None]:
    """Resolve the area of interest of a run.

    An explicit area, inline or from a file, always wins. Without one the tile grid
    is loaded and, when tiles were given, the area becomes the rectangle enclosing them.

    Args:
        area (list[str] | None): inline ``lon,lat`` pairs
        area_file (Path | None): WKT or GeoJSON file
        tiles (Iterable[str]): tile identifiers
        shape_file (Path | None): KML tile grid replacing the bundled one
        grid (TileGrid | None): grid already loaded by the caller

    Raises:
        ConfigurationError: when both an inline area and an area file are given, or a tile is unknown
        ParseError: when the area cannot be parsed

    Returns:
        tuple[AreaOfInterest, TileGrid | None]: the area and the grid, None when it was not needed
    """
    if area and area_file:
        raise ConfigurationError("Use either an inline area or an area file, not both")
    if area:
        return AreaOfInterest.from_pairs(area), grid
    if area_file:
        return AreaOfInterest.from_file(area_file), grid
    grid = grid or TileGrid.load(shape_file)
    tile_ids = list(tiles)
    if not tile_ids:
        return AreaOfInterest(), grid
    return AreaOfInterest.from_extent(grid.bounding_box(tile_ids)), grid
