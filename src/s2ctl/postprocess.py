"""Post-processing of transferred products.

Archive compression, removal of the uncompressed copy, and the viewing angle
inspection that detects granules whose metadata lacks the incidence angle grid
of one or more bands. Filling those grids is delegated to an ``AngleFiller``
registered under the fill method name.
"""

import copy
import logging
import shutil
import xml.etree.ElementTree as ElementTree
import zipfile
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from s2ctl.errors import PostProcessError
from s2ctl.model import SAFE_SUFFIX, FillAnglesMethod, ReturnCode
from s2ctl.registry import Registry

log = logging.getLogger(__name__)

# Constants
ANGLES_GRID_TAG = "Viewing_Incidence_Angles_Grids"
VALUES_TAG = "VALUES"
BAND_IDS = tuple(range(13))
GRANULE_METADATA_PATTERNS = ("GRANULE/*/MTD_TL.xml", "GRANULE/*/*MTD*_TL_*.xml", "*/metadata.xml")
MISSING_VALUE = "NaN"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


# ============================================================================
# Archive operations
# ============================================================================


def compress_product(path: Path) -> Path:
    """Zip a product directory next to it.

    Args:
        path (Path): product directory, e.g. ``out/S2A_MSIL1C_..._20240503T124502.SAFE``

    Raises:
        PostProcessError: when the directory is missing or the archive cannot be written

    Returns:
        Path: the archive, named after the product without the ``.SAFE`` suffix
    """
    if not path.is_dir():
        raise PostProcessError(f"Cannot compress {path}: not a directory")
    stem = path.name[: -len(SAFE_SUFFIX)] if path.name.endswith(SAFE_SUFFIX) else path.name
    archive = path.parent / f"{stem}.zip"
    log.info("Compressing %s", path.name)
    try:
        with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as handle:
            for file in sorted(path.rglob("*")):
                if file.is_file():
                    handle.write(file, file.relative_to(path.parent))
    except OSError as e:
        archive.unlink(missing_ok=True)
        raise PostProcessError(f"Compression of {path.name} failed: {e}") from e
    log.debug("Created archive %s", archive)
    return archive


def delete_product(path: Path) -> None:
    log.info("Deleting %s", path.name)
    try:
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        raise PostProcessError(f"Deletion of {path} failed: {e}") from e


# ============================================================================
# Viewing angles
# ============================================================================


class AngleFiller(ABC):
    """Completes the incidence angle grids of a granule metadata file in place."""

    @abstractmethod
    def fill(self, metadata_path: Path, missing_band_ids: list[int], method: FillAnglesMethod) -> None: ...


class MarkMissingAngleFiller(AngleFiller):
    """Adds grids for the missing bands with every value set to NaN.

    The layout of the new grids is copied from the first grid present in the file.
    """

    def fill(self, metadata_path: Path, missing_band_ids: list[int], method: FillAnglesMethod) -> None:
        for _, (prefix, uri) in ElementTree.iterparse(metadata_path, events=("start-ns",)):
            ElementTree.register_namespace(prefix, uri)
        try:
            tree = ElementTree.parse(metadata_path)
        except ElementTree.ParseError as e:
            raise PostProcessError(f"Invalid granule metadata {metadata_path}: {e}") from e

        parents = {child: parent for parent in tree.iter() for child in parent}
        grids = [el for el in tree.iter() if _local_name(el.tag) == ANGLES_GRID_TAG]
        if not grids:
            raise PostProcessError(f"No angle grid in {metadata_path} to derive the missing ones from")

        template = grids[0]
        parent = parents[grids[-1]]
        position = list(parent).index(grids[-1]) + 1
        for band_id in missing_band_ids:
            grid = copy.deepcopy(template)
            grid.set("bandId", str(band_id))
            for values in grid.iter():
                if _local_name(values.tag) == VALUES_TAG and values.text:
                    values.text = " ".join(MISSING_VALUE for _ in values.text.split())
            parent.insert(position, grid)
            position += 1
        tree.write(metadata_path, encoding="UTF-8", xml_declaration=True)
        log.debug("Marked %d band(s) as missing in %s", len(missing_band_ids), metadata_path)


angle_fillers = Registry[AngleFiller](name="angle filler")
angle_fillers.register(FillAnglesMethod.NAN.value, MarkMissingAngleFiller)


def create_angle_filler(method: FillAnglesMethod) -> AngleFiller | None:
    """Filler registered for the method, None for ``NONE``.

    Raises:
        PostProcessError: when no filler is registered for the method
    """
    if method == FillAnglesMethod.NONE:
        return None
    if not angle_fillers.is_registered(method.value):
        raise PostProcessError(f"No angle filler available for method {method.value}")
    return angle_fillers.create(method.value)


class ProductInspector:
    """Detects granules with missing viewing incidence angle grids and optionally fills them."""

    def __init__(self, method: FillAnglesMethod = FillAnglesMethod.NONE, filler: AngleFiller | None = None):
        self.method = method
        self.filler = filler

    @staticmethod
    def granule_metadata(product_path: Path) -> list[Path]:
        found: set[Path] = set()
        for pattern in GRANULE_METADATA_PATTERNS:
            found.update(product_path.glob(pattern))
        return sorted(found)

    @staticmethod
    def missing_bands(metadata_path: Path) -> list[int]:
        """Band ids (0-12) without an incidence angle grid in the granule metadata.

        Raises:
            PostProcessError: when the file is not valid XML
        """
        present = set()
        try:
            for _, element in ElementTree.iterparse(metadata_path, events=("end",)):
                if _local_name(element.tag) == ANGLES_GRID_TAG:
                    band_id = element.get("bandId")
                    if band_id is not None and band_id.isdigit():
                        present.add(int(band_id))
                    element.clear()
        except ElementTree.ParseError as e:
            raise PostProcessError(f"Invalid granule metadata {metadata_path}: {e}") from e
        return [band_id for band_id in BAND_IDS if band_id not in present]

    def inspect(self, product_path: Path) -> dict[Path, list[int]]:
        """Missing bands per granule metadata file, granules without gaps are left out."""
        report = {}
        for metadata_path in self.granule_metadata(product_path):
            missing = self.missing_bands(metadata_path)
            if missing:
                log.warning(
                    "%s is missing angle grids for band(s) %s",
                    metadata_path.relative_to(product_path),
                    ", ".join(str(band_id) for band_id in missing),
                )
                report[metadata_path] = missing
        return report

    def process(self, product_path: Path) -> int:
        """Inspect a product and fill the missing grids with the configured method.

        Returns:
            int: number of metadata files that were modified
        """
        report = self.inspect(product_path)
        if not report or self.method == FillAnglesMethod.NONE:
            return 0
        if self.filler is None:
            raise PostProcessError(f"No angle filler available for method {self.method.value}")
        for metadata_path, missing in report.items():
            self.filler.fill(metadata_path, missing, self.method)
        log.info("Filled missing angles of %d granule(s) in %s", len(report), product_path.name)
        return len(report)

    def inspect_folder(self, folder: Path, products: Iterable[str] = ()) -> ReturnCode:
        """Process the requested products of a folder, or every product directory in it.

        Returns:
            ReturnCode: ``MISSING_INPUT`` when the folder or a requested product is missing
        """
        if not folder.is_dir():
            log.error("Input folder %s does not exist", folder)
            return ReturnCode.MISSING_INPUT
        names = list(products)
        if names:
            paths = []
            for name in names:
                candidates = [folder / name, folder / f"{name}{SAFE_SUFFIX}"]
                path = next((candidate for candidate in candidates if candidate.is_dir()), None)
                if path is None:
                    log.error("Product %s not found in %s", name, folder)
                    return ReturnCode.MISSING_INPUT
                paths.append(path)
        else:
            paths = sorted(path for path in folder.iterdir() if path.is_dir())

        failed = 0
        for path in paths:
            try:
                self.process(path)
            except PostProcessError as e:
                log.error("Post-processing of %s failed: %s", path.name, e)
                failed += 1
        log.info("Inspected %d product(s)", len(paths))
        return ReturnCode.DOWNLOAD_ERROR if failed else ReturnCode.OK
