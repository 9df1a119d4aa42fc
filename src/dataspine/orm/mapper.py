"""Data mapper with relation resolution and cascading deletes.

A :class:`Mapper` owns one table: its name, primary key, a field whitelist
and the relations it declares. It reads through any :class:`DataSource` and
can attach related rows with the ``with`` option.

Manifesto:
    - **No N+1:** One follow-up read per requested relation, batched with
      ``IN`` on the distinct keys (habtm: join table, then targets)
    - **Missing is not an error:** Unmatched relations attach ``None`` or
      ``[]``
    - **Atomic cascades:** Dependents and owner are deleted inside one
      ``transaction()`` of the data source

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │ ArticleMapper.get_all_by({"id >": 1000}, {"with": ["author"]})   │
    └──────────────────────────────────────────────────────────────────┘
          │ 1. read("articles", query)                 (owner rows)
          │ 2. read("authors", {"id": [2000, 2001]})   (one per relation)
          ▼
    ┌──────────────────────────────────────────────────────────────────┐
    │ Row({"id": 1001, "author_id": 2000, "author": Row({...}) | None})│
    └──────────────────────────────────────────────────────────────────┘

Example::

    class AuthorMapper(Mapper):
        table = "authors"

    class ArticleMapper(Mapper):
        table = "articles"
        fields = ("id", "title", "author_id")
        relations = {"author": belongs_to(AuthorMapper, foreign_key="author_id")}

    registry = MapperRegistry(source)
    article = registry.get(ArticleMapper).get_by({"id": 1000}, {"with": ["author"]})

Tags:
    orm, data-mapper, relations, eager-loading, cascade, dataspine
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from dataspine.errors import MapperError, RelationConfigError
from dataspine.logging import get_logger
from dataspine.orm.registry import MapperRegistry
from dataspine.orm.relations import Relation, RelationKind
from dataspine.protocols import DataSource
from dataspine.query import QueryObject
from dataspine.row import ResultSet, Row

logger = get_logger(__name__)


def _distinct(values: list[Any]) -> list[Any]:
    """Non-null values, first occurrence order."""
    return list(dict.fromkeys(value for value in values if value is not None))


class Mapper:
    """Base class for table mappers.

    Subclasses set ``table`` and optionally ``primary_key``, ``fields`` and
    ``relations``. Mappers are long-lived: build one per data source and
    reuse it.

    Parameters:
        data_source: Any object implementing :class:`DataSource`.
        registry: Resolves relation targets. A private registry is created
                  when omitted.
    """

    table: ClassVar[str] = ""
    primary_key: ClassVar[str] = "id"
    fields: ClassVar[tuple[str, ...]] = ()
    relations: ClassVar[Mapping[str, Relation]] = {}

    def __init__(self, data_source: DataSource, registry: MapperRegistry | None = None) -> None:
        if not self.table:
            raise MapperError(f"{type(self).__name__} does not define a table")
        self.data_source = data_source
        self.registry = registry if registry is not None else MapperRegistry(data_source)
        if type(self) not in self.registry:
            self.registry.add(self)

    # -- query helpers -----------------------------------------------------

    def create_query(
        self,
        criteria: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> QueryObject:
        return QueryObject(criteria, options)

    def create_row(self, data: Mapping[str, Any], fields: list[str] | None = None) -> Row:
        """Build a new row, keeping only whitelisted fields.

        ``fields`` overrides the mapper's whitelist. An empty whitelist keeps
        everything.
        """
        allowed = fields if fields is not None else self.fields
        if allowed:
            return Row({key: value for key, value in data.items() if key in allowed})
        return Row(data)

    # -- reads -------------------------------------------------------------

    def get(self, query: QueryObject | None = None) -> Row | None:
        """First matching row, or ``None``."""
        query = query.copy() if query is not None else self.create_query()
        return self.read(query.set_option("limit", 1)).first()

    def get_by(
        self,
        criteria: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> Row | None:
        return self.get(self.create_query(criteria, options))

    def get_all(self, query: QueryObject | None = None) -> ResultSet:
        return self.read(query if query is not None else self.create_query())

    def get_all_by(
        self,
        criteria: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> ResultSet:
        return self.get_all(self.create_query(criteria, options))

    def count(self, query: QueryObject | None = None) -> int:
        return self.data_source.count(self.table, query if query is not None else self.create_query())

    def count_by(
        self,
        criteria: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> int:
        return self.count(self.create_query(criteria, options))

    def find_list(
        self,
        query: QueryObject | None = None,
        key_field: str | None = None,
        value_field: str | None = None,
        group_field: str | None = None,
    ) -> list[Any] | dict[Any, Any]:
        """Reduce matching rows to a list or lookup dict.

        - key only: ``[key, ...]``
        - key and value: ``{key: value}``
        - key, value and group: ``{group: {key: value}}``

        Rows missing any requested field (or holding ``None``) are skipped.
        """
        key_field = key_field or self.primary_key
        rows = self.data_source.read(self.table, query if query is not None else self.create_query())

        if value_field is None:
            return [row[key_field] for row in rows if row.has(key_field)]

        result: dict[Any, Any] = {}
        for row in rows:
            if not row.has(key_field) or not row.has(value_field):
                continue
            if group_field is None:
                result[row[key_field]] = row[value_field]
            elif row.has(group_field):
                result.setdefault(row[group_field], {})[row[key_field]] = row[value_field]
        return result

    def read(self, query: QueryObject) -> ResultSet:
        """Read owner rows and attach every relation named in ``with``.

        Raises:
            RelationConfigError: ``with`` names a relation this mapper does
                not declare.
        """
        names = query.with_
        for name in names:
            if name not in self.relations:
                raise RelationConfigError(f"Unknown relation `{name}` on {type(self).__name__}")

        result = self.data_source.read(self.table, query)
        if result.is_empty():
            return result

        for name in dict.fromkeys(names):
            self._load_relation(name, self.relations[name], result)
        return result

    # -- writes ------------------------------------------------------------

    def save(self, row: Row) -> bool:
        """Insert ``row`` when it is new, otherwise update it by primary key.

        A generated key is written back onto ``row``.
        """
        data = self._storable(row)
        key = data.get(self.primary_key)

        if key is None or self.count_by({self.primary_key: key}) == 0:
            created = self.data_source.create(self.table, data)
            if created and key is None:
                row[self.primary_key] = self.data_source.generated_id
            return created

        return self.data_source.update(self.table, self.create_query({self.primary_key: key}), data) == 1

    def update_all(self, query: QueryObject, data: dict[str, Any]) -> int:
        if not data:
            raise MapperError("Data cannot be empty")
        return self.data_source.update(self.table, query, data)

    def update_all_by(self, criteria: dict[str, Any], data: dict[str, Any]) -> int:
        return self.update_all(self.create_query(criteria), data)

    def delete_all(self, query: QueryObject) -> int:
        """Bulk delete. Does not cascade to dependent relations."""
        return self.data_source.delete(self.table, query)

    def delete_all_by(self, criteria: dict[str, Any]) -> int:
        return self.delete_all(self.create_query(criteria))

    def delete(self, row: Mapping[str, Any]) -> bool:
        """Delete ``row`` and its dependents in one transaction.

        Dependent has-one/has-many rows are deleted through their own mapper
        (so their dependents cascade too). Dependent habtm relations only
        lose their join-table rows. The owner goes last.

        Returns:
            True when exactly one owner row was deleted.

        Raises:
            MapperError: ``row`` has no primary-key value.
        """
        key = row.get(self.primary_key)
        if key is None:
            raise MapperError(f"Primary key `{self.primary_key}` has no value").with_context(
                table=self.table
            )

        with self.data_source.transaction():
            self._delete_dependents(key)
            deleted = self.data_source.delete(self.table, self.create_query({self.primary_key: key}))
        return deleted == 1

    # -- relations ---------------------------------------------------------

    def _target(self, relation: Relation) -> Mapper:
        return self.registry.get(relation.target)

    def _related_options(self, relation: Relation, key_field: str) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if relation.fields:
            fields = list(relation.fields)
            if key_field not in fields:
                fields.append(key_field)
            options["fields"] = fields
        if relation.order:
            options["order"] = relation.order
        return options

    def _fetch_related(self, relation: Relation, key_field: str, keys: list[Any]) -> ResultSet:
        target = self._target(relation)
        criteria = {**relation.conditions, key_field: keys}
        return target.get_all_by(criteria, self._related_options(relation, key_field))

    def _load_relation(self, name: str, relation: Relation, rows: ResultSet) -> None:
        if relation.kind is RelationKind.BELONGS_TO:
            self._load_belongs_to(name, relation, rows)
        elif relation.kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
            self._load_habtm(name, relation, rows)
        else:
            self._load_has(name, relation, rows)

    def _load_belongs_to(self, name: str, relation: Relation, rows: ResultSet) -> None:
        keys = _distinct([row.get(relation.foreign_key) for row in rows])
        logger.debug("orm.eager_load", relation=name, keys=len(keys))

        related: dict[Any, Row] = {}
        if keys:
            target_key = self._target(relation).primary_key
            for target in self._fetch_related(relation, target_key, keys):
                related.setdefault(target[target_key], target)

        for row in rows:
            row[name] = related.get(row.get(relation.foreign_key))

    def _load_has(self, name: str, relation: Relation, rows: ResultSet) -> None:
        keys = _distinct([row.get(self.primary_key) for row in rows])
        logger.debug("orm.eager_load", relation=name, keys=len(keys))

        grouped: dict[Any, list[Row]] = {}
        if keys:
            grouped = self._fetch_related(relation, relation.foreign_key, keys).group_by(
                lambda target: target[relation.foreign_key]
            )

        for row in rows:
            matches = grouped.get(row.get(self.primary_key), [])
            if relation.kind is RelationKind.HAS_MANY:
                row[name] = list(matches)
            else:
                row[name] = matches[0] if matches else None

    def _load_habtm(self, name: str, relation: Relation, rows: ResultSet) -> None:
        keys = _distinct([row.get(self.primary_key) for row in rows])
        logger.debug("orm.eager_load", relation=name, keys=len(keys))

        owners_by_target: dict[Any, list[Any]] = {}
        if keys:
            links = self.data_source.read(
                relation.join_table, self.create_query({relation.foreign_key: keys})
            )
            for link in links:
                owners = owners_by_target.setdefault(link[relation.local_key], [])
                if link[relation.foreign_key] not in owners:
                    owners.append(link[relation.foreign_key])

        grouped: dict[Any, list[Row]] = {}
        target_ids = _distinct(list(owners_by_target))
        if target_ids:
            target_key = self._target(relation).primary_key
            # Target result order is kept inside each owner's list
            for target in self._fetch_related(relation, target_key, target_ids):
                for owner in owners_by_target.get(target[target_key], []):
                    grouped.setdefault(owner, []).append(target)

        for row in rows:
            row[name] = grouped.get(row.get(self.primary_key), [])

    def _delete_dependents(self, key: Any) -> None:
        for name, relation in self.relations.items():
            if not relation.dependent:
                continue
            logger.debug("orm.cascade_delete", table=self.table, relation=name)

            if relation.kind is RelationKind.HAS_AND_BELONGS_TO_MANY:
                self.data_source.delete(relation.join_table, self.create_query({relation.foreign_key: key}))
                continue

            target = self._target(relation)
            for child in target.get_all_by({relation.foreign_key: key}):
                target.delete(child)

    def _storable(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Row state without attached relation data."""
        state = row.to_state() if isinstance(row, Row) else dict(row)
        return {key: value for key, value in state.items() if key not in self.relations}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table!r})"


__all__ = ["Mapper"]
