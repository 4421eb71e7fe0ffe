"""Unit tests for the data model."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from s2ctl.aoi import AreaOfInterest
from s2ctl.errors import ConfigurationError
from s2ctl.model import ProductDescriptor, SearchConfiguration


class TestProductDescriptor:
    """Test product names and their parsed fields."""

    def test_compact_name_fields(self, product):
        assert product.is_compact
        assert product.platform == "S2A"
        assert product.tile_id == "31TCJ"
        assert product.relative_orbit == 108
        assert product.sensing_time == datetime(2024, 5, 3, 10, 30, 21, tzinfo=timezone.utc)

    def test_safe_suffix_stripped(self, product):
        stripped = ProductDescriptor(name=f"{product.name}.SAFE")
        assert stripped.name == product.name
        assert stripped.safe_name == f"{product.name}.SAFE"
        assert stripped.uuid is None

    def test_legacy_name(self):
        product = ProductDescriptor(name="S2A_OPER_PRD_MSIL1C_PDMC_20160101T000000_R108_V20160101T103021")
        assert not product.is_compact
        assert product.sensing_time is None
        assert product.tile_id is None

    def test_empty_name(self):
        with pytest.raises(ValidationError):
            ProductDescriptor(name="  ")


class TestSearchConfiguration:
    """Test the shared search surface."""

    def test_defaults(self):
        config = SearchConfiguration()
        assert config.cloud_percentage == 30.0
        assert config.limit == 10
        assert (config.start, config.end) == (-7, 0)
        assert config.aoi.is_empty
        assert config.tiles == frozenset()

    def test_area_is_frozen(self, square_area):
        config = SearchConfiguration(aoi=square_area)
        assert config.aoi.frozen
        with pytest.raises(ConfigurationError):
            config.aoi.append(0.0, 0.0)

    def test_configuration_is_immutable(self):
        config = SearchConfiguration()
        with pytest.raises(ValidationError):
            config.limit = 5

    def test_tiles_normalized(self):
        config = SearchConfiguration(tiles=["T31TCJ", "31tch", " "])
        assert config.tiles == frozenset({"31TCJ", "31TCH"})

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cloud_percentage": 101},
            {"cloud_percentage": -1},
            {"limit": 0},
            {"relative_orbit": -1},
            {"start": 0, "end": -1},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            SearchConfiguration(**kwargs)

    def test_empty_area_default(self):
        assert SearchConfiguration(aoi=AreaOfInterest()).aoi.num_points == 0
