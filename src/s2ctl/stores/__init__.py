"""Remote product stores.

- SciHubSource: catalog store, products addressed by catalog id over OData
- AwsSource: tile store, products addressed by the fields of their name
"""

from s2ctl.registry import Registry
from s2ctl.stores.aws import AwsSource
from s2ctl.stores.base import ProductSource
from s2ctl.stores.scihub import SciHubSource, odata_base

registry = Registry[ProductSource](name="product store")
registry.register("scihub", SciHubSource)
registry.register("aws", AwsSource)

__all__ = ["AwsSource", "ProductSource", "SciHubSource", "odata_base"]
