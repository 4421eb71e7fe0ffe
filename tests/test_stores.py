"""Unit tests for product location and transfer in both stores."""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from s2ctl.errors import TransferError
from s2ctl.model import ProductDescriptor
from s2ctl.stores import AwsSource, SciHubSource, odata_base
from s2ctl.stores.aws import tile_id_from_path
from s2ctl.stores.scihub import granule_tile

ODATA = "https://catalog.example.com/apihub/odata/v1"


class TestSciHubSource:
    """Test catalog products addressed by their id."""

    @pytest.fixture
    def downloader(self):
        downloader = Mock()
        downloader.download.return_value = True
        return downloader

    def test_odata_base(self):
        assert odata_base("https://catalog.example.com/apihub/search") == ODATA
        assert odata_base("https://catalog.example.com/dhus/search/") == "https://catalog.example.com/dhus/odata/v1"
        assert odata_base("https://catalog.example.com/dhus") == "https://catalog.example.com/dhus/odata/v1"

    def test_locate(self, downloader, product):
        source = SciHubSource(downloader, ODATA)
        assert source.locate(product) == f"{ODATA}/Products('{product.uuid}')"

    def test_locate_without_uuid(self, downloader, product):
        with pytest.raises(TransferError, match="no catalog id"):
            SciHubSource(downloader, ODATA).locate(ProductDescriptor(name=product.name))

    def test_fetch_packed(self, downloader, product, temp_download_dir):
        target = SciHubSource(downloader, ODATA).fetch(product, temp_download_dir)
        assert target == temp_download_dir / f"{product.name}.zip"
        uri, destination = downloader.download.call_args.args[:2]
        assert uri == f"{ODATA}/Products('{product.uuid}')/$value"
        assert destination == target

    def test_fetch_packed_failure(self, downloader, product, temp_download_dir):
        downloader.download.return_value = False
        with pytest.raises(TransferError):
            SciHubSource(downloader, ODATA).fetch(product, temp_download_dir)

    def test_fetch_unpacked_filters_granules(self, downloader, product, temp_download_dir):
        """Test the node walk, granules of tiles outside the filter are skipped."""
        root = f"{ODATA}/Products('{product.uuid}')/Nodes('{product.safe_name}')"
        listings = {
            root: [{"Name": "manifest.safe", "ChildrenNumber": 0}, {"Name": "GRANULE", "ChildrenNumber": 2}],
            f"{root}/Nodes('GRANULE')": [
                {"Name": "L1C_T31TCJ_A045678_20240503T103021", "ChildrenNumber": 1},
                {"Name": "L1C_T31TCH_A045678_20240503T103021", "ChildrenNumber": 1},
            ],
            f"{root}/Nodes('GRANULE')/Nodes('L1C_T31TCJ_A045678_20240503T103021')": [
                {"Name": "MTD_TL.xml", "ChildrenNumber": 0}
            ],
        }
        downloader.get_json.side_effect = lambda uri: {
            "d": {"results": listings[uri.removesuffix("/Nodes?$format=json")]}
        }

        source = SciHubSource(downloader, ODATA, unpacked=True, tiles=["T31TCJ"])
        target = source.fetch(product, temp_download_dir)

        assert target == temp_download_dir / product.safe_name
        destinations = [call.args[1] for call in downloader.download.call_args_list]
        assert destinations == [
            target / "manifest.safe",
            target / "GRANULE" / "L1C_T31TCJ_A045678_20240503T103021" / "MTD_TL.xml",
        ]
        assert downloader.get_json.call_count == 3

    def test_fetch_unpacked_partial_failure(self, downloader, product, temp_download_dir):
        downloader.get_json.return_value = {"d": {"results": [{"Name": "manifest.safe", "ChildrenNumber": 0}]}}
        downloader.download.return_value = False
        with pytest.raises(TransferError, match="manifest.safe"):
            SciHubSource(downloader, ODATA, unpacked=True).fetch(product, temp_download_dir)

    @pytest.mark.parametrize(
        "listing",
        [
            {"d": {"results": [{"name_lower": "x"}]}},
            {"d": {"results": [{"Name": "GRANULE", "ChildrenNumber": "many"}]}},
            {"d": {"results": None}},
            {"d": []},
            ["unexpected"],
        ],
    )
    def test_fetch_unpacked_malformed_listing(self, downloader, product, temp_download_dir, listing):
        downloader.get_json.return_value = listing
        with pytest.raises(TransferError, match=f"Cannot list {product.name}"):
            SciHubSource(downloader, ODATA, unpacked=True).fetch(product, temp_download_dir)
        downloader.download.assert_not_called()

    def test_fetch_unpacked_nested_listing_error(self, downloader, product, temp_download_dir):
        downloader.get_json.side_effect = [
            {"d": {"results": [{"Name": "GRANULE", "ChildrenNumber": 1}]}},
            {"error": "gone"},
        ]
        with pytest.raises(TransferError, match="Cannot list GRANULE"):
            SciHubSource(downloader, ODATA, unpacked=True).fetch(product, temp_download_dir)

    def test_granule_tile(self):
        assert granule_tile("L1C_T31TCJ_A045678_20240503T103021") == "31TCJ"
        assert granule_tile("S2A_OPER_MSI_L1C_TL_SGS__20160101T120000_A002782_T31TCJ_N02.01") == "31TCJ"
        assert granule_tile("QI_DATA") is None


class TestAwsSource:
    """Test tile store products addressed by the fields of their name."""

    @pytest.fixture
    def downloader(self, product):
        info = {
            "name": product.name,
            "tiles": [{"path": "tiles/31/T/CJ/2024/5/3/0"}, {"path": "tiles/31/T/CH/2024/5/3/0"}],
        }
        keys = {
            "tiles/31/T/CJ/2024/5/3/0/": [
                "tiles/31/T/CJ/2024/5/3/0/B01.jp2",
                "tiles/31/T/CJ/2024/5/3/0/qi/",
                "tiles/31/T/CJ/2024/5/3/0/qi/MSK_CLOUDS_B00.gml",
            ],
            "tiles/31/T/CH/2024/5/3/0/": ["tiles/31/T/CH/2024/5/3/0/B01.jp2"],
        }

        def download(uri: str, destination: Path, item_id: str) -> bool:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if destination.name == "productInfo.json":
                destination.write_text(json.dumps(info), encoding="utf-8")
            return True

        downloader = Mock()
        downloader.download.side_effect = download
        downloader.list_keys.side_effect = lambda bucket, prefix: keys[prefix]
        return downloader

    def test_locate(self, downloader, product):
        assert AwsSource(downloader, "bucket").locate(product) == f"products/2024/5/3/{product.name}"

    def test_locate_legacy_name(self, downloader):
        legacy = ProductDescriptor(name="S2A_OPER_PRD_MSIL1C_PDMC_20160101T000000_R108_V20160101T103021")
        with pytest.raises(TransferError, match="compact naming convention"):
            AwsSource(downloader, "bucket").locate(legacy)

    def test_fetch_filtered_tiles(self, downloader, product, temp_download_dir):
        target = AwsSource(downloader, "bucket", tiles=["31TCJ"]).fetch(product, temp_download_dir)

        assert target == temp_download_dir / product.name
        assert (target / "productInfo.json").exists()
        uris = [call.args[0] for call in downloader.download.call_args_list]
        assert uris == [
            f"s3://bucket/products/2024/5/3/{product.name}/productInfo.json",
            "s3://bucket/tiles/31/T/CJ/2024/5/3/0/B01.jp2",
            "s3://bucket/tiles/31/T/CJ/2024/5/3/0/qi/MSK_CLOUDS_B00.gml",
        ]
        assert downloader.download.call_args_list[-1].args[1] == target / "31TCJ" / "qi" / "MSK_CLOUDS_B00.gml"

    def test_fetch_all_tiles(self, downloader, product, temp_download_dir):
        AwsSource(downloader, "bucket").fetch(product, temp_download_dir)
        assert downloader.download.call_count == 4

    def test_fetch_no_requested_tile(self, downloader, product, temp_download_dir):
        with pytest.raises(TransferError, match="none of the requested tiles"):
            AwsSource(downloader, "bucket", tiles=["32TQM"]).fetch(product, temp_download_dir)

    def test_fetch_missing_product(self, downloader, product, temp_download_dir):
        downloader.download.side_effect = None
        downloader.download.return_value = False
        with pytest.raises(TransferError, match="not found"):
            AwsSource(downloader, "bucket").fetch(product, temp_download_dir)

    @pytest.mark.parametrize(
        "info",
        [
            ["not", "an", "object"],
            {"tiles": [{"path": "tiles/31/T/CJ/2024/5/3/0"}, "tiles/31/T/CH/2024/5/3/0"]},
            {"tiles": 3},
            "{broken",
        ],
    )
    def test_fetch_malformed_product_info(self, product, temp_download_dir, info):
        def download(uri: str, destination: Path, item_id: str) -> bool:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(info if isinstance(info, str) else json.dumps(info), encoding="utf-8")
            return True

        downloader = Mock()
        downloader.download.side_effect = download
        with pytest.raises(TransferError, match="Invalid product info"):
            AwsSource(downloader, "bucket").fetch(product, temp_download_dir)
        downloader.list_keys.assert_not_called()

    def test_tile_id_from_path(self):
        assert tile_id_from_path("tiles/1/N/AA/2024/5/3/0") == "01NAA"
        with pytest.raises(TransferError):
            tile_id_from_path("products/2024/5/3")
