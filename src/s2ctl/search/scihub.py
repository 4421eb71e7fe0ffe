import logging
from typing import Any

import requests

from s2ctl.auth import AnonymousAuthenticator, Authenticator
from s2ctl.dates import catalog_interval
from s2ctl.errors import (
    AuthenticationError,
    ConfigurationError,
    EndpointUnavailableError,
    SearchError,
)
from s2ctl.model import ProductDescriptor, SearchConfiguration
from s2ctl.net import create_session, is_available
from s2ctl.search.base import SearchStrategy

log = logging.getLogger(__name__)

# Constants
PLATFORM_NAME = "Sentinel-2"
CLOUD_ATTRIBUTE = "cloudcoverpercentage"
DEFAULT_PAGE_SIZE = 100
DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_SECONDS = 30


def select_endpoint(primary: str, secondary: str | None, session: requests.Session) -> str:
    """Pick the catalog endpoint to query, failing over to the secondary one.

    Args:
        primary (str): preferred search URL
        secondary (str | None): fallback search URL
        session (requests.Session): session used for the availability probes

    Raises:
        EndpointUnavailableError: when neither endpoint answers

    Returns:
        str: the first reachable URL
    """
    if is_available(primary, session):
        return primary
    log.error("%s is not available!", primary)
    if secondary and is_available(secondary, session):
        log.info("Using secondary catalog endpoint %s", secondary)
        return secondary
    raise EndpointUnavailableError(
        f"Catalog endpoints unavailable: {', '.join(url for url in (primary, secondary) if url)}"
    )


def _as_list(value: Any) -> list:
    # single results come back as an object instead of a one element list
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


class SciHubSearch(SearchStrategy):
    """OpenSearch query against a DHuS catalog (SciHub API hub)."""

    def __init__(
        self,
        config: SearchConfiguration,
        url: str,
        authenticator: Authenticator | None = None,
        session: requests.Session | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout: int = DEFAULT_TIMEOUT_SECONDS,
    ):
        super().__init__(config)
        self.url = url
        self.auth = authenticator or AnonymousAuthenticator()
        self.session = session or create_session()
        self.page_size = page_size
        self.max_retries = max_retries
        self.timeout = timeout
        self._anonymous = self.auth.anonymous

    # ============================================================================
    # Query building
    # ============================================================================

    @property
    def interval(self) -> str:
        return catalog_interval(self.config.start, self.config.end)

    def build_query(self) -> str:
        """Compose the catalog query string.

        Raises:
            ConfigurationError: when the area of interest is not a polygon

        Returns:
            str: e.g. ``platformname:Sentinel-2 AND footprint:"Intersects(POLYGON((...)))" AND ...``
        """
        clauses = [
            f"platformname:{PLATFORM_NAME}",
            f'footprint:"Intersects({self.config.aoi.to_wkt()})"',
            f"beginPosition:{self.interval}",
            f"{CLOUD_ATTRIBUTE}:[0 TO {self.config.cloud_percentage:g}]",
        ]
        if self.config.relative_orbit is not None:
            clauses.append(f"relativeorbitnumber:{self.config.relative_orbit}")
        return " AND ".join(clauses)

    # ============================================================================
    # Execution
    # ============================================================================

    def execute(self) -> list[ProductDescriptor]:
        if self.config.aoi.is_empty:
            raise ConfigurationError("Catalog search requires an area of interest")
        query = self.build_query()
        log.info("Searching %s", self.url)
        log.debug("Query: %s", query)

        products: list[ProductDescriptor] = []
        start = 0
        while len(products) < self.config.limit:
            rows = min(self.page_size, self.config.limit - len(products))
            payload = self._fetch_page(query, start, rows)
            page = self.parse_entries(payload)
            products.extend(page[: self.config.limit - len(products)])
            # entries skipped while parsing still count towards a full page
            if len(_as_list(payload["feed"].get("entry"))) < rows:
                break
            start += rows
        log.info("Found %d products", len(products))
        return products

    def _fetch_page(self, query: str, start: int, rows: int) -> dict:
        params = {"q": query, "start": start, "rows": rows, "format": "json"}
        attempt = 0
        last_error: str = ""
        while attempt < self.max_retries:
            headers = {} if self._anonymous else self.auth.auth_headers
            try:
                response = self.session.get(self.url, params=params, headers=headers, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                attempt += 1
                log.debug("Catalog request failed (attempt %s/%s): %s", attempt, self.max_retries, e)
                last_error = str(e)
                continue

            if response.status_code == 401:
                if self._anonymous:
                    raise AuthenticationError(f"Catalog {self.url} refused the anonymous query (401)")
                # credentials rejected, anonymous listing may still be permitted
                log.error("Catalog authentication failed for %s, retrying the query anonymously", self.url)
                self._anonymous = True
                continue
            if response.status_code >= 500:
                attempt += 1
                log.debug("Catalog answered %s (attempt %s/%s)", response.status_code, attempt, self.max_retries)
                last_error = f"HTTP {response.status_code}"
                continue
            try:
                response.raise_for_status()
                return response.json()
            except requests.exceptions.HTTPError as e:
                raise SearchError(f"Catalog query rejected: {e}") from e
            except ValueError as e:
                raise SearchError(f"Invalid catalog response from {self.url}: {e}") from e
        raise EndpointUnavailableError(
            f"Catalog {self.url} unavailable after {self.max_retries} attempts: {last_error}"
        )

    @staticmethod
    def parse_entries(payload: dict) -> list[ProductDescriptor]:
        """Extract product descriptors from a JSON search response.

        Args:
            payload (dict): decoded response, entries live under ``feed.entry``

        Raises:
            SearchError: when the payload is not a search feed

        Returns:
            list[ProductDescriptor]: one descriptor per entry, in response order
        """
        if not isinstance(payload, dict) or not isinstance(payload.get("feed"), dict):
            raise SearchError("Invalid catalog response: missing 'feed'")
        products = []
        for entry in _as_list(payload["feed"].get("entry")):
            name = entry.get("title")
            if not name:
                log.warning("Skipping catalog entry without title: %s", entry.get("id"))
                continue
            cloud = next(
                (
                    float(attr["content"])
                    for attr in _as_list(entry.get("double"))
                    if attr.get("name") == CLOUD_ATTRIBUTE and "content" in attr
                ),
                None,
            )
            products.append(ProductDescriptor(name=name, uuid=entry.get("id"), cloud_percentage=cloud))
        return products
