import logging
import uuid
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from s2ctl.errors import PostProcessError, S2CtlError
from s2ctl.model import FillAnglesMethod, ProductDescriptor, ProgressEventType, ReturnCode
from s2ctl.postprocess import AngleFiller, ProductInspector, compress_product, create_angle_filler, delete_product
from s2ctl.progress.events import emit_event
from s2ctl.stores import ProductSource

log = logging.getLogger(__name__)


class DownloaderState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    LOCATING = "locating"
    TRANSFERRING = "transferring"
    POST_PROCESSING = "post_processing"
    DONE = "done"
    FAILED = "failed"


class ProductDownloader:
    """Retrieves products one at a time from a store and post-processes them.

    A failing product is logged and counted, the remaining products are still
    processed. Post-processing errors never undo a completed transfer.
    """

    def __init__(
        self,
        store: ProductSource,
        destination: Path,
        *,
        compress: bool = False,
        delete_after_compress: bool = False,
        fill_angles: FillAnglesMethod = FillAnglesMethod.NONE,
        angle_filler: AngleFiller | None = None,
    ):
        self.store = store
        self.destination = destination
        self.compress = compress
        self.delete_after_compress = delete_after_compress
        self.fill_angles = fill_angles
        self.angle_filler = angle_filler
        self.state = DownloaderState.IDLE

    def download_products(self, products: Iterable[ProductDescriptor]) -> ReturnCode:
        """Download every product into the destination folder.

        Args:
            products (Iterable[ProductDescriptor]): products to retrieve, possibly none

        Returns:
            ReturnCode: ``OK`` when every product was transferred, ``DOWNLOAD_ERROR`` otherwise
        """
        self.state = DownloaderState.RESOLVING
        items = list(products)
        self.destination.mkdir(parents=True, exist_ok=True)
        if not items:
            log.info("No products to download")
            self.state = DownloaderState.DONE
            return ReturnCode.OK
        if self.delete_after_compress and not self.compress:
            log.warning("Deletion was requested without compression, downloaded products will be kept")

        success_count = 0
        failure_count = 0
        batch_id = str(uuid.uuid4())
        emit_event(
            ProgressEventType.BATCH_STARTED,
            task_id=batch_id,
            total_items=len(items),
            description=type(self.store).__name__,
        )
        self.store.open()
        try:
            for product in items:
                if self._download_product(product):
                    success_count += 1
                else:
                    failure_count += 1
        finally:
            self.store.close()
            emit_event(
                ProgressEventType.BATCH_COMPLETED,
                task_id=batch_id,
                success_count=success_count,
                failure_count=failure_count,
            )

        log.info("Downloaded %d of %d products", success_count, len(items))
        if failure_count:
            self.state = DownloaderState.FAILED
            return ReturnCode.DOWNLOAD_ERROR
        self.state = DownloaderState.DONE
        return ReturnCode.OK

    def _download_product(self, product: ProductDescriptor) -> bool:
        task_id = f"product_{product.name}"
        emit_event(ProgressEventType.TASK_CREATED, task_id=task_id, description=product.name)
        try:
            self.state = DownloaderState.LOCATING
            location = self.store.locate(product)
            log.debug("%s located at %s", product.name, location)
            self.state = DownloaderState.TRANSFERRING
            local_path = self.store.fetch(product, self.destination)
        except S2CtlError as e:
            log.error("Download of %s failed: %s", product.name, e)
            emit_event(ProgressEventType.TASK_COMPLETED, task_id=task_id, success=False, description=str(e))
            return False

        self.state = DownloaderState.POST_PROCESSING
        self._post_process(local_path)
        emit_event(ProgressEventType.TASK_COMPLETED, task_id=task_id, success=True, description="downloaded")
        return True

    def _post_process(self, path: Path) -> None:
        if self.fill_angles != FillAnglesMethod.NONE:
            if path.is_dir():
                try:
                    filler = self.angle_filler or create_angle_filler(self.fill_angles)
                    ProductInspector(self.fill_angles, filler).process(path)
                except PostProcessError as e:
                    log.error("Post-processing of %s failed: %s", path.name, e)
            else:
                log.warning("Skipping angle inspection of %s, the product is packed", path.name)

        if self.compress and path.is_dir():
            try:
                compress_product(path)
                if self.delete_after_compress:
                    delete_product(path)
            except PostProcessError as e:
                log.error("Post-processing of %s failed: %s", path.name, e)
