import logging
from pathlib import Path
from typing import Annotated, Literal

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

from s2ctl.errors import (
    AuthenticationError,
    ConfigurationError,
    EndpointUnavailableError,
    ParseError,
    PostProcessError,
    SearchError,
)
from s2ctl.model import FillAnglesMethod, ProductDescriptor, ProductStore, ReturnCode
from s2ctl.utils import read_lines, setup_logging, split_values

load_dotenv()
app = typer.Typer(
    name="s2ctl",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
context = {}
log = logging.getLogger(__name__)

MASKED_OPTIONS = {"password", "proxy_password"}


def init_reporter() -> None:
    if "progress" not in context:
        raise ValueError("Missing reporter, please ensure at least an `empty` reporter is registered")
    reporter = context["progress"]
    reporter.start()


def stop_reporter() -> None:
    if "progress" in context:
        context["progress"].stop()


def log_to_folder(folder: Path, log_file: str) -> None:
    """Reconfigure logging so the run log is also written into the given folder."""
    setup_logging(
        log_level=context.get("log_level", "INFO"),
        reporter_cls=context.get("reporter_cls"),
        log_file=folder / log_file,
    )


def log_arguments(arguments: dict) -> None:
    log.info("Executing with the following arguments:")
    for name, value in arguments.items():
        if value is None or value == [] or value is False:
            continue
        log.info("%s=%s", name, "***" if name in MASKED_OPTIONS else value)


def parse_product_lines(lines: list[str]) -> list[ProductDescriptor]:
    """Product file lines: a name, optionally followed by its catalog id."""
    products = []
    for line in lines:
        parts = line.replace(",", " ").split()
        products.append(ProductDescriptor(name=parts[0], uuid=parts[1] if len(parts) > 1 else None))
    return products


def build_products(
    names: list[str],
    uuids: list[str],
    product_file: Path | None,
    store: ProductStore,
) -> list[ProductDescriptor] | None:
    """Products given on the command line, None when a search has to find them.

    Raises:
        ConfigurationError: when catalog downloads do not get one id per product name
    """
    if names:
        if store == ProductStore.SCIHUB and len(uuids) != len(names):
            raise ConfigurationError("For the list of product names a corresponding list of UUIDs has to be given!")
        return [
            ProductDescriptor(name=name, uuid=uuids[index] if index < len(uuids) else None)
            for index, name in enumerate(names)
        ]
    if product_file is not None:
        if not product_file.is_file():
            raise ConfigurationError(f"Resource not found: product file '{product_file}' does not exist")
        return parse_product_lines(list(read_lines(product_file)))
    return None


@app.callback()
def main(
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Set logging level")] = "INFO",
    progress: Annotated[Literal["empty", "simple", "rich"], typer.Option("--progress", "-p")] = "empty",
):
    from s2ctl.progress import create_reporter, registry

    reporter_cls = registry.get(progress)
    setup_logging(log_level=log_level, reporter_cls=reporter_cls)
    context["log_level"] = log_level
    context["reporter_cls"] = reporter_cls
    context["progress"] = create_reporter(reporter_name=progress)


@app.command()
def download(
    out: Annotated[Path, typer.Option("--out", "-o", help="Folder where the products are downloaded")],
    area: Annotated[
        list[str] | None,
        typer.Option("--area", "-a", help="Area of interest vertex as lon,lat (repeat for every vertex)"),
    ] = None,
    area_file: Annotated[
        Path | None, typer.Option("--areafile", help="File with the area of interest (WKT or GeoJSON)")
    ] = None,
    shape_file: Annotated[
        Path | None, typer.Option("--shapetiles", help="KML file with the Sentinel-2 tile grid")
    ] = None,
    tiles: Annotated[
        list[str] | None, typer.Option("--tiles", "-t", help="Tile identifiers, space or comma separated")
    ] = None,
    tile_file: Annotated[Path | None, typer.Option("--tilefile", help="File with one tile identifier per line")] = None,
    products: Annotated[list[str] | None, typer.Option("--products", "-p", help="Product names to download")] = None,
    product_file: Annotated[
        Path | None, typer.Option("--productfile", help="File with one product per line, optionally with its UUID")
    ] = None,
    uuids: Annotated[
        list[str] | None, typer.Option("--uuid", help="Catalog UUIDs matching the --products names")
    ] = None,
    user: Annotated[str | None, typer.Option("--user", "-u", help="Catalog user name")] = None,
    password: Annotated[str | None, typer.Option("--password", help="Catalog password")] = None,
    cloud_percentage: Annotated[
        float | None, typer.Option("--cloudpercentage", "-c", help="Maximum cloud coverage percentage")
    ] = None,
    start_date: Annotated[
        str | None, typer.Option("--startdate", "-s", help="Sensing start date (yyyy-MM-dd)")
    ] = None,
    end_date: Annotated[str | None, typer.Option("--enddate", "-e", help="Sensing end date (yyyy-MM-dd)")] = None,
    limit: Annotated[int | None, typer.Option("--limit", help="Maximum number of products")] = None,
    store: Annotated[
        ProductStore | None,
        typer.Option("--store", case_sensitive=False, help="Store products are downloaded from"),
    ] = None,
    relative_orbit: Annotated[
        int | None, typer.Option("--relative-orbit", "-r", help="Relative orbit number filter")
    ] = None,
    fill_angles: Annotated[
        FillAnglesMethod,
        typer.Option("--ma", case_sensitive=False, help="Handling of missing viewing angle grids"),
    ] = FillAnglesMethod.NONE,
    compress: Annotated[bool, typer.Option("--zip", help="Compress the downloaded products")] = False,
    delete: Annotated[bool, typer.Option("--delete", help="Delete the products once compressed")] = False,
    unpacked: Annotated[
        bool, typer.Option("--unpacked", help="Download catalog products file by file instead of as archive")
    ] = False,
    aws: Annotated[bool, typer.Option("--aws", help="Search the tile store instead of the catalog")] = False,
    proxy_type: Annotated[str | None, typer.Option("--proxy-type", help="Proxy type, http or socks")] = None,
    proxy_host: Annotated[str | None, typer.Option("--proxy-host")] = None,
    proxy_port: Annotated[int | None, typer.Option("--proxy-port")] = None,
    proxy_user: Annotated[str | None, typer.Option("--proxy-user")] = None,
    proxy_password: Annotated[str | None, typer.Option("--proxy-password")] = None,
):
    """Search and download Sentinel-2 products."""
    arguments = dict(locals())
    code = ReturnCode.OK
    init_reporter()
    try:
        code = _run_download(**arguments)
    except (ConfigurationError, ParseError, ValidationError, PostProcessError) as e:
        log.error("Invalid input: %s", e)
        code = ReturnCode.INVALID_INPUT
    except (EndpointUnavailableError, SearchError, AuthenticationError) as e:
        log.error("Search failed: %s", e)
        code = ReturnCode.DOWNLOAD_ERROR
    finally:
        stop_reporter()
    raise typer.Exit(code=int(code))


def _run_download(
    out: Path,
    area: list[str] | None,
    area_file: Path | None,
    shape_file: Path | None,
    tiles: list[str] | None,
    tile_file: Path | None,
    products: list[str] | None,
    product_file: Path | None,
    uuids: list[str] | None,
    user: str | None,
    password: str | None,
    cloud_percentage: float | None,
    start_date: str | None,
    end_date: str | None,
    limit: int | None,
    store: ProductStore | None,
    relative_orbit: int | None,
    fill_angles: FillAnglesMethod,
    compress: bool,
    delete: bool,
    unpacked: bool,
    aws: bool,
    proxy_type: str | None,
    proxy_host: str | None,
    proxy_port: int | None,
    proxy_user: str | None,
    proxy_password: str | None,
) -> ReturnCode:
    arguments = dict(locals())
    from s2ctl.aoi import resolve_area
    from s2ctl.auth import AnonymousAuthenticator, create_authenticator
    from s2ctl.config import ProxySettings, get_settings
    from s2ctl.dates import sensing_window
    from s2ctl.downloaders import HTTPDownloader, S3Downloader, create_s3_client
    from s2ctl.model import SearchConfiguration
    from s2ctl.net import create_session, proxy_url
    from s2ctl.orchestrator import ProductDownloader
    from s2ctl.search import AwsSearch, SciHubSearch, select_endpoint
    from s2ctl.stores import AwsSource, SciHubSource, odata_base
    from s2ctl.tiles import TileGrid

    settings = get_settings()
    out.mkdir(parents=True, exist_ok=True)
    log_to_folder(out, settings.log_file)
    log_arguments(arguments)

    # everything below up to the search is validated before any network activity
    store = store or (ProductStore.AWS if aws else ProductStore.SCIHUB)
    user = user or settings.auth.scihub.username
    password = password or settings.auth.scihub.password
    requested = build_products(products or [], uuids or [], product_file, store)
    searching = requested is None
    if not aws and (searching or store == ProductStore.SCIHUB) and not (user and password):
        raise ConfigurationError("Missing SciHub credentials")

    tile_ids = split_values(tiles)
    if not tile_ids and tile_file is not None:
        if not tile_file.is_file():
            raise ConfigurationError(f"Resource not found: tile file '{tile_file}' does not exist")
        tile_ids = split_values(read_lines(tile_file))

    aoi, grid = resolve_area(area, area_file, tile_ids, shape_file)
    if aws and searching and not tile_ids and not aoi.is_empty:
        grid = grid or TileGrid.load(shape_file)
        tile_ids = grid.intersecting(aoi.bounds())
        log.info("Area of interest covers %d tile(s)", len(tile_ids))

    start, end = sensing_window(start_date, end_date)
    config = SearchConfiguration(
        aoi=aoi,
        cloud_percentage=settings.defaults.cloud_percentage if cloud_percentage is None else cloud_percentage,
        relative_orbit=relative_orbit,
        limit=settings.defaults.limit if limit is None else limit,
        start=start if start_date else settings.defaults.start_offset,
        end=end,
        tiles=tile_ids,
    )

    overrides = {
        "type": proxy_type,
        "host": proxy_host,
        "port": proxy_port,
        "user": proxy_user,
        "password": proxy_password,
    }
    proxy = ProxySettings.model_validate(
        settings.proxy.model_dump() | {key: value for key, value in overrides.items() if value is not None}
    )
    session = create_session(proxy)
    scihub = settings.search.scihub
    endpoint = None
    if not aws and (searching or store == ProductStore.SCIHUB):
        endpoint = select_endpoint(scihub.url, scihub.secondary_url, session)
    authenticator = create_authenticator(user, password)

    if not searching:
        found = requested
        log.info("%d product(s) requested, skipping search", len(found))
    elif aws:
        search = AwsSearch(
            config,
            client=create_s3_client(AnonymousAuthenticator(), settings.search.aws.region_name, proxy_url(proxy)),
            bucket=settings.search.aws.bucket,
        )
        found = search.execute()
    elif aoi.is_empty:
        log.warning("No area of interest and no tiles given, nothing to search")
        found = []
    else:
        search = SciHubSearch(
            config,
            url=endpoint,
            authenticator=authenticator,
            session=session,
            page_size=scihub.page_size,
            max_retries=scihub.max_retries,
            timeout=scihub.timeout,
        )
        found = search.execute()

    if store == ProductStore.SCIHUB:
        http = settings.download.http
        source = SciHubSource(
            HTTPDownloader(
                authenticator,
                max_retries=http.max_retries,
                chunk_size=http.chunk_size,
                timeout=http.timeout,
                proxy=proxy,
            ),
            odata_url=scihub.odata_url or odata_base(endpoint or scihub.url),
            unpacked=unpacked,
            tiles=config.tiles,
        )
    else:
        s3 = settings.download.s3
        source = AwsSource(
            S3Downloader(
                AnonymousAuthenticator(),
                max_retries=s3.max_retries,
                chunk_size=s3.chunk_size,
                region_name=s3.region_name or settings.search.aws.region_name,
                proxy_url=proxy_url(proxy),
            ),
            bucket=settings.search.aws.bucket,
            tiles=config.tiles,
        )
    log.info("Products will be downloaded from %s", store.value)

    downloader = ProductDownloader(
        source,
        out,
        compress=compress,
        delete_after_compress=delete,
        fill_angles=fill_angles,
    )
    return downloader.download_products(found)


@app.command()
def inspect(
    input_dir: Annotated[Path, typer.Option("--input", "-i", help="Folder holding downloaded products")],
    fill_angles: Annotated[
        FillAnglesMethod,
        typer.Option("--ma", case_sensitive=False, help="Handling of missing viewing angle grids"),
    ] = FillAnglesMethod.NONE,
    products: Annotated[list[str] | None, typer.Option("--products", "-p", help="Products to inspect")] = None,
):
    """Check downloaded products for missing viewing angle grids."""
    from s2ctl.config import get_settings
    from s2ctl.postprocess import ProductInspector, create_angle_filler

    init_reporter()
    try:
        if input_dir.is_dir():
            log_to_folder(input_dir, get_settings().log_file)
        inspector = ProductInspector(fill_angles, create_angle_filler(fill_angles))
        code = inspector.inspect_folder(input_dir, products or [])
    except PostProcessError as e:
        log.error("Invalid input: %s", e)
        code = ReturnCode.INVALID_INPUT
    finally:
        stop_reporter()
    raise typer.Exit(code=int(code))


if __name__ == "__main__":
    app()
