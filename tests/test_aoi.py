"""Unit tests for the area of interest model."""

import json

import pytest

from s2ctl.aoi import AreaOfInterest, resolve_area
from s2ctl.errors import ConfigurationError, ParseError
from s2ctl.tiles import TileExtent


class TestAreaOfInterest:
    """Test vertex handling and conversions."""

    def test_pairs_keep_vertex_count(self):
        """Test that N inline pairs give exactly N vertices, without closing the ring."""
        area = AreaOfInterest.from_pairs(["1.0,43.0", "2.0,43.0", "2.0,44.0", "1.0,44.0"])
        assert area.num_points == 4
        assert not area.is_closed
        assert area.points[0] == (1.0, 43.0)

    def test_pairs_with_closing_vertex(self):
        """Test that a repeated first vertex is kept as given."""
        area = AreaOfInterest.from_pairs(["1,43 2,43 2,44", "1,43"])
        assert area.num_points == 4
        assert area.is_closed

    @pytest.mark.parametrize("value", ["1.0;43.0", "1.0", "a,b"])
    def test_pairs_invalid(self, value):
        """Test that malformed pairs raise ParseError."""
        with pytest.raises(ParseError, match="Invalid coordinate pair"):
            AreaOfInterest.from_pairs([value])

    def test_append_does_not_close(self):
        """Test that append adds one vertex at a time."""
        area = AreaOfInterest()
        assert area.is_empty
        area.append(0, 0)
        area.append(1, 0)
        assert area.points == ((0.0, 0.0), (1.0, 0.0))

    def test_frozen_area_rejects_append(self, square_area):
        """Test that a frozen area cannot be modified."""
        square_area.freeze()
        with pytest.raises(ConfigurationError):
            square_area.append(3.0, 3.0)

    def test_from_wkt_tolerates_whitespace(self):
        """Test WKT parsing with extra whitespace."""
        area = AreaOfInterest.from_wkt("  \n POLYGON (( 0 0,  1 0, 1 1 , 0 1, 0 0 ))  \n")
        assert area.num_points == 5
        assert area.is_closed
        assert area.bounds() == TileExtent(0.0, 0.0, 1.0, 1.0)

    @pytest.mark.parametrize("text", ["POLYGON((0 0, 1 0", "not wkt at all", ""])
    def test_from_wkt_invalid(self, text):
        """Test that malformed WKT raises ParseError."""
        with pytest.raises(ParseError):
            AreaOfInterest.from_wkt(text)

    def test_from_extent_corner_order(self):
        """Test that a rectangle is built SW, SE, NE, NW, SW."""
        area = AreaOfInterest.from_extent(TileExtent(1.0, 2.0, 3.0, 4.0))
        assert area.points == ((1.0, 2.0), (3.0, 2.0), (3.0, 4.0), (1.0, 4.0), (1.0, 2.0))

    def test_to_wkt_closes_ring(self):
        """Test that WKT output closes an open ring without touching the vertices."""
        area = AreaOfInterest.from_pairs(["0,0", "1,0", "1,1"])
        assert area.to_wkt() == "POLYGON((0.0 0.0,1.0 0.0,1.0 1.0,0.0 0.0))"
        assert area.num_points == 3

    def test_to_wkt_requires_polygon(self):
        """Test that fewer than three vertices cannot be rendered."""
        with pytest.raises(ConfigurationError):
            AreaOfInterest.from_pairs(["0,0", "1,1"]).to_wkt()

    def test_from_geojson_file(self, tmp_path):
        """Test reading a GeoJSON polygon file."""
        path = tmp_path / "area.geojson"
        path.write_text(
            json.dumps({"type": "Polygon", "coordinates": [[[0, 0], [2, 0], [2, 1], [0, 1], [0, 0]]]}),
            encoding="utf-8",
        )
        area = AreaOfInterest.from_file(path)
        assert area.bounds() == TileExtent(0.0, 0.0, 2.0, 1.0)
        assert area.is_closed

    def test_from_wkt_file(self, tmp_path):
        """Test that non GeoJSON files are read as WKT."""
        path = tmp_path / "area.wkt"
        path.write_text("POLYGON((0 0, 1 0, 1 1, 0 0))\n", encoding="utf-8")
        assert AreaOfInterest.from_file(path).num_points == 4

    def test_from_file_missing(self, tmp_path):
        """Test that a missing area file is a configuration error."""
        with pytest.raises(ConfigurationError, match="does not exist"):
            AreaOfInterest.from_file(tmp_path / "missing.wkt")


class TestResolveArea:
    """Test the precedence between the area sources."""

    def test_inline_and_file_conflict(self, tmp_path):
        """Test that an inline area and an area file cannot be combined."""
        with pytest.raises(ConfigurationError, match="not both"):
            resolve_area(area=["0,0", "1,0", "1,1"], area_file=tmp_path / "area.wkt")

    def test_explicit_area_wins_over_tiles(self, grid):
        """Test that tiles do not replace an inline area."""
        area, _ = resolve_area(area=["0,0", "1,0", "1,1", "0,0"], tiles=["31TCJ"], grid=grid)
        assert area.bounds() == TileExtent(0.0, 0.0, 1.0, 1.0)

    def test_tiles_give_bounding_rectangle(self, grid):
        """Test that tiles alone give the rectangle enclosing them."""
        area, used = resolve_area(tiles=["31TCJ", "31TCH"], grid=grid)
        assert used is grid
        assert area.num_points == 5
        assert area.bounds() == grid.bounding_box(["31TCJ", "31TCH"])

    def test_nothing_given_loads_grid(self, grid):
        """Test that without area and tiles the area stays empty."""
        area, used = resolve_area(grid=grid)
        assert area.is_empty
        assert used.count > 0
