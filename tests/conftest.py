"""Pytest configuration and shared fixtures."""

import logging
from pathlib import Path
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

log = logging.getLogger(__name__)

# Load .env file BEFORE any imports that might read settings
load_dotenv()

PRODUCT_NAME = "S2A_MSIL1C_20240503T103021_N0510_R108_T31TCJ_20240503T124502"
PRODUCT_UUID = "6b5f4b4c-2f6e-4c8e-9a55-1f6d2a7c3b11"


def pytest_addoption(parser):
    parser.addoption("--slow", action="store", default=False, help="Run slow tests")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--slow"):
        # --slow given in cli: do not skip slow tests
        return
    skip_slow = pytest.mark.skip(reason="Marked as slow, skipping")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(scope="session")
def grid():
    """Provide the bundled Sentinel-2 tile grid, loaded once per session."""
    from s2ctl.tiles import TileGrid

    return TileGrid.from_bundled()


@pytest.fixture
def square_area():
    """Provide a closed 1x1 degree area around Toulouse."""
    from s2ctl.aoi import AreaOfInterest

    return AreaOfInterest([(1.0, 43.0), (2.0, 43.0), (2.0, 44.0), (1.0, 44.0), (1.0, 43.0)])


@pytest.fixture
def product():
    """Provide a catalog product descriptor with a compact name."""
    from s2ctl.model import ProductDescriptor

    return ProductDescriptor(name=PRODUCT_NAME, uuid=PRODUCT_UUID)


@pytest.fixture
def temp_download_dir(tmp_path):
    """Provide a temporary directory for downloads."""
    download_dir = tmp_path / "downloads"
    download_dir.mkdir()
    return download_dir


@pytest.fixture
def clean_settings(tmp_path, monkeypatch):
    """Run from an empty folder so no config.yml or .env is picked up, with a fresh settings instance."""
    from s2ctl.config import reset_settings

    monkeypatch.chdir(tmp_path)
    for name in ("S2CTL_AUTH__SCIHUB__USERNAME", "S2CTL_AUTH__SCIHUB__PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


def _make_response(status_code: int = 200, payload: dict | None = None, content: bytes = b"") -> Mock:
    """Build a mock ``requests.Response``."""
    import requests

    response = Mock()
    response.status_code = status_code
    response.headers = {"Content-Length": str(len(content))} if content else {}
    response.json = Mock(return_value=payload if payload is not None else {})
    response.iter_content = Mock(return_value=[content] if content else [])

    def raise_for_status():
        if status_code >= 400:
            raise requests.exceptions.HTTPError(f"{status_code} Error")

    response.raise_for_status = Mock(side_effect=raise_for_status)
    return response


def _write_granule_metadata(path: Path, band_ids: list[int]) -> Path:
    """Write a minimal granule metadata file with one angle grid per given band."""
    grids = "".join(
        f'<Viewing_Incidence_Angles_Grids bandId="{band_id}" detectorId="1">'
        "<Zenith><Values_List><VALUES>1.0 2.0</VALUES><VALUES>3.0 4.0</VALUES></Values_List></Zenith>"
        "</Viewing_Incidence_Angles_Grids>"
        for band_id in band_ids
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<n1:Level-1C_Tile_ID xmlns:n1="https://psd-14.sentinel2.eo.esa.int/PSD/S2_PDI_Level-1C_Tile_Metadata.xsd">'
        f"<n1:Geometric_Info><Tile_Angles>{grids}</Tile_Angles></n1:Geometric_Info>"
        "</n1:Level-1C_Tile_ID>",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def make_response():
    """Provide a factory of mock HTTP responses."""
    return _make_response


@pytest.fixture
def write_metadata():
    """Provide a writer of minimal granule metadata files."""
    return _write_granule_metadata
