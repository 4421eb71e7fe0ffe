"""Name-based registry for pluggable implementations.

s2ctl keeps one registry per extension point: search strategies, product
stores, authenticators, downloaders, progress reporters and angle fillers.

Example:
    >>> from s2ctl.registry import Registry
    >>> from s2ctl.search import SearchStrategy
    >>>
    >>> strategies = Registry[SearchStrategy]("search strategy")
    >>> strategies.register("aws", AwsSearch)
    >>> search = strategies.create("aws", config=my_config, client=s3_client, bucket="sentinel-s2-l1c")
"""

from typing import Generic, TypeVar

T = TypeVar("T")


class Registry(Generic[T]):
    """Maps lower-case names to implementation classes."""

    def __init__(self, name: str):
        self.registry_name = name
        self._items: dict[str, type[T]] = {}

    def get(self, name: str) -> type[T] | None:
        return self._items.get(name.lower())

    def register(self, name: str, item_class: type[T]) -> None:
        self._items[name.lower()] = item_class

    def create(self, name: str, **kwargs) -> T:
        item_class = self.get(name)
        if item_class is None:
            raise ValueError(
                f"{self.registry_name.capitalize()} '{name}' not found. "
                f"Specify one of the following: ({self.list()}), "
                f"or register your own {self.registry_name}."
            )
        return item_class(**kwargs)

    def list(self) -> list[str]:
        return list(self._items.keys())

    def is_registered(self, name: str) -> bool:
        return name.lower() in self._items
