from abc import ABC, abstractmethod

from s2ctl.model import ProductDescriptor, SearchConfiguration


class SearchStrategy(ABC):
    """
    Abstract base class for product searches.

    A strategy holds one immutable SearchConfiguration and translates it into the
    native query vocabulary of its store.
    """

    def __init__(self, config: SearchConfiguration):
        self.config = config

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def execute(self) -> list[ProductDescriptor]:
        """Run the search.

        Returns:
            list[ProductDescriptor]: matching products, never more than ``config.limit``
        """
        ...
