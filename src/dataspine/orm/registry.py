"""Explicit mapper registry.

Relations name their target mapper by class or by class name. The registry
turns that name into a live mapper bound to the same data source, creating
each mapper lazily on first use. There is no process-wide instance. Build
one per data source and pass it to the mappers that need it.

    >>> registry = MapperRegistry(source)
    >>> registry.register(AuthorMapper)
    >>> registry.get("AuthorMapper") is registry.get(AuthorMapper)
    True
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from dataspine.errors import MapperError

if TYPE_CHECKING:
    from dataspine.orm.mapper import Mapper
    from dataspine.protocols import DataSource


def _key(key: Any) -> str:
    if isinstance(key, type):
        return key.__name__
    if isinstance(key, str) and key:
        return key
    raise MapperError(f"Invalid mapper key {key!r}")


class MapperRegistry:
    """Lazily creates and caches mappers for one data source."""

    def __init__(self, data_source: DataSource) -> None:
        self.data_source = data_source
        self._factories: dict[str, Callable[[MapperRegistry], Mapper]] = {}
        self._mappers: dict[str, Mapper] = {}

    def register(
        self,
        key: type[Mapper] | str,
        factory: Callable[[MapperRegistry], Mapper] | None = None,
    ) -> MapperRegistry:
        """Register how to build a mapper.

        Without ``factory`` the key must be a mapper class, which is built
        as ``cls(registry.data_source, registry)``.
        """
        if factory is None:
            if not isinstance(key, type):
                raise MapperError(f"Mapper `{key}` needs a factory when registered by name")
            mapper_class = key

            def factory(registry: MapperRegistry) -> Mapper:
                return mapper_class(registry.data_source, registry)

        self._factories[_key(key)] = factory
        return self

    def add(self, mapper: Mapper) -> MapperRegistry:
        """Register an already-built mapper under its class name."""
        self._mappers[_key(type(mapper))] = mapper
        return self

    def get(self, key: type[Mapper] | str) -> Mapper:
        """Return the mapper for ``key``, creating it on first use.

        Raises:
            MapperError: Nothing registered under a name, or a bad key.
        """
        name = _key(key)
        if name in self._mappers:
            return self._mappers[name]

        if name in self._factories:
            mapper = self._factories[name](self)
        elif isinstance(key, type):
            mapper = key(self.data_source, self)
        else:
            raise MapperError(f"No mapper registered for `{name}`")

        self._mappers[name] = mapper
        return mapper

    def __contains__(self, key: Any) -> bool:
        name = _key(key)
        return name in self._mappers or name in self._factories


__all__ = ["MapperRegistry"]
