"""s2ctl: Sentinel-2 product search and download.

s2ctl locates Sentinel-2 products in one of two stores, the SciHub catalog
or the public tile bucket on AWS, filtered by area of interest, tiles,
sensing window, cloud coverage and relative orbit, then downloads and
optionally post-processes them.

Example:
    >>> from s2ctl.aoi import resolve_area
    >>> from s2ctl.model import SearchConfiguration
    >>> from s2ctl.search import AwsSearch
    >>>
    >>> aoi, grid = resolve_area(tiles=["31TCJ"])
    >>> config = SearchConfiguration(aoi=aoi, tiles=["31TCJ"], start=-10, end=0)
    >>> products = AwsSearch(config).execute()
"""
