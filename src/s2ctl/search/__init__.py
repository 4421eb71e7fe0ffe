"""Product search strategies.

- SciHubSearch: OpenSearch query against the catalog store
- AwsSearch: listing of the tile store bucket by tile path
"""

from s2ctl.registry import Registry
from s2ctl.search.aws import AwsSearch
from s2ctl.search.base import SearchStrategy
from s2ctl.search.scihub import SciHubSearch, select_endpoint

registry = Registry[SearchStrategy](name="search strategy")
registry.register("scihub", SciHubSearch)
registry.register("aws", AwsSearch)


def create_search(name: str, **kwargs) -> SearchStrategy:
    return registry.create(name, **kwargs)


__all__ = ["AwsSearch", "SciHubSearch", "SearchStrategy", "create_search", "select_endpoint"]
