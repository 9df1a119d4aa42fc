"""Object-relational mapping: mappers, relation descriptors and the registry."""

from dataspine.orm.mapper import Mapper
from dataspine.orm.registry import MapperRegistry
from dataspine.orm.relations import (
    Relation,
    RelationKind,
    belongs_to,
    has_and_belongs_to_many,
    has_many,
    has_one,
)

__all__ = [
    "Mapper",
    "MapperRegistry",
    "Relation",
    "RelationKind",
    "belongs_to",
    "has_one",
    "has_many",
    "has_and_belongs_to_many",
]
