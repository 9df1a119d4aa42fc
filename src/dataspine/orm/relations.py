"""Relation descriptors declared on mappers.

A :class:`Relation` says how rows of one mapper relate to rows of another.
Relations are declared once per mapper class and validated when the
descriptor is built, so a broken declaration fails at import time rather
than on the first query.

Key semantics::

    belongs_to   owner[foreign_key]            -> target[target.primary_key]
    has_one      owner[owner.primary_key]      -> target[foreign_key]
    has_many     owner[owner.primary_key]      -> target[foreign_key]
    habtm        owner[owner.primary_key]      -> join_table[foreign_key]
                 join_table[local_key]         -> target[target.primary_key]

Example::

    class ArticleMapper(Mapper):
        table = "articles"
        relations = {
            "author": belongs_to("AuthorMapper", foreign_key="author_id"),
            "comments": has_many("CommentMapper", foreign_key="article_id", dependent=True),
            "tags": has_and_belongs_to_many(
                "TagMapper",
                join_table="articles_tags",
                foreign_key="article_id",
                local_key="tag_id",
                dependent=True,
            ),
        }
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dataspine.errors import RelationConfigError


class RelationKind(str, Enum):
    BELONGS_TO = "belongsTo"
    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"
    HAS_AND_BELONGS_TO_MANY = "hasAndBelongsToMany"

    @property
    def is_collection(self) -> bool:
        return self in (RelationKind.HAS_MANY, RelationKind.HAS_AND_BELONGS_TO_MANY)


@dataclass(frozen=True)
class Relation:
    """One declared association.

    Attributes:
        kind: Association type.
        target: Target mapper class, or its name as registered.
        foreign_key: See the module docstring for which side holds it.
        local_key: Join-table column pointing at the target (habtm only).
        join_table: Table linking owner and target (habtm only).
        dependent: Delete related rows when the owner is deleted.
        fields: Projection for the eager-load query.
        conditions: Extra criteria merged into the eager-load query.
        order: Ordering for the eager-load query.
    """

    kind: RelationKind
    target: Any
    foreign_key: str
    local_key: str | None = None
    join_table: str | None = None
    dependent: bool = False
    fields: tuple[str, ...] = ()
    conditions: Mapping[str, Any] = field(default_factory=dict)
    order: Any = None

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "kind", RelationKind(self.kind))
        except ValueError as e:
            raise RelationConfigError(f"Unknown relation kind `{self.kind}`", cause=e) from e
        object.__setattr__(self, "fields", tuple(self.fields or ()))
        object.__setattr__(self, "conditions", dict(self.conditions or {}))

        kind = self.kind.value
        if not self.foreign_key:
            raise RelationConfigError(f"{kind} relation is missing foreign_key")
        if not self.target:
            raise RelationConfigError(f"{kind} relation is missing target")
        if self.kind is RelationKind.BELONGS_TO and self.dependent:
            raise RelationConfigError("belongsTo relation cannot be dependent")
        if self.kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            if not self.join_table:
                raise RelationConfigError("hasAndBelongsToMany relation requires join_table")
            if not self.local_key:
                raise RelationConfigError("hasAndBelongsToMany relation is missing local_key")

    @property
    def target_name(self) -> str:
        return self.target if isinstance(self.target, str) else self.target.__name__


def belongs_to(target: Any, foreign_key: str, **kwargs: Any) -> Relation:
    return Relation(RelationKind.BELONGS_TO, target, foreign_key, **kwargs)


def has_one(target: Any, foreign_key: str, **kwargs: Any) -> Relation:
    return Relation(RelationKind.HAS_ONE, target, foreign_key, **kwargs)


def has_many(target: Any, foreign_key: str, **kwargs: Any) -> Relation:
    return Relation(RelationKind.HAS_MANY, target, foreign_key, **kwargs)


def has_and_belongs_to_many(
    target: Any,
    join_table: str,
    foreign_key: str,
    local_key: str,
    **kwargs: Any,
) -> Relation:
    return Relation(
        RelationKind.HAS_AND_BELONGS_TO_MANY,
        target,
        foreign_key,
        local_key=local_key,
        join_table=join_table,
        **kwargs,
    )


__all__ = [
    "RelationKind",
    "Relation",
    "belongs_to",
    "has_one",
    "has_many",
    "has_and_belongs_to_many",
]
