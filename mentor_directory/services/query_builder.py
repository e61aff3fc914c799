"""Parameterized SELECT/UPDATE statements built from sparse field maps.

Search maps translate to ANDed predicates: a scalar value compiles to
``column = :param`` and a list, tuple or set compiles to
``column IN (:p1, :p2, ...)``. Values are always bound parameters; column
names must belong to the user allow-list or the whole call is rejected.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import (
    ColumnElement,
    Select,
    String,
    Table,
    Update,
    and_,
    func,
    select,
    update,
)
from sqlalchemy.orm import Session

from mentor_directory.errors import InvalidField, storage_errors
from mentor_directory.models.enums import UserType
from mentor_directory.models.user import User
from mentor_directory.services.fields import USER_FIELDS, UserFieldSchema

logger = logging.getLogger(__name__)

SEQUENCE_TYPES = (list, tuple, set, frozenset)
BINARY_TYPES = (bytes, bytearray, memoryview)


@dataclass(frozen=True)
class CompiledStatement:
    """A statement plus whether it carries a WHERE clause."""

    statement: Any
    has_predicate: bool

    @property
    def sql(self) -> str:
        """Statement text with expanded IN lists; values stay as placeholders."""
        if self.statement is None:
            return ""
        return str(self.statement.compile(compile_kwargs={"render_postcompile": True}))

    @property
    def params(self) -> dict[str, Any]:
        if self.statement is None:
            return {}
        return dict(self.statement.compile().params)


@dataclass(frozen=True)
class SelectStatement(CompiledStatement):
    statement: Select
    include_tags: bool = False


@dataclass(frozen=True)
class UpdateStatement(CompiledStatement):
    statement: Update | None
    # None when the caller did not ask for a tag change
    tags: list[str] | None = None


def decode_value(value: Any) -> Any:
    """Decode binary storage values to text."""
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


def decode_row(row: Mapping[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in row.items()}


def is_mentor_search(search: Mapping[str, Any]) -> bool:
    value = search.get("type_user")
    if isinstance(value, SEQUENCE_TYPES):
        return len(value) > 0 and all(v == UserType.MENTOR.value for v in value)
    return value == UserType.MENTOR.value


class QueryBuilder:
    """Builds and runs allow-listed statements against the users table."""

    def __init__(self, table: Table | None = None, schema: UserFieldSchema = USER_FIELDS):
        self.table = table if table is not None else User.__table__
        self.schema = schema

    def _column(self, name: str):
        if name not in self.schema.columns or name not in self.table.c:
            raise InvalidField(name)
        return self.table.c[name]

    def _where(self, search: Mapping[str, Any]) -> list[ColumnElement[bool]]:
        clauses = []
        for name, value in search.items():
            column = self._column(name)
            if isinstance(value, SEQUENCE_TYPES):
                clauses.append(column.in_(list(value)))
            else:
                clauses.append(column == value)
        return clauses

    def build_select(
        self,
        search: Mapping[str, Any],
        projection: Sequence[str] | None = None,
    ) -> SelectStatement:
        """Build a SELECT over the users table.

        ``id``, ``token``, ``token_expiry`` and ``type_user`` are always
        selected. Text columns are coalesced to ``''`` so rows keep a stable
        shape. ``tags`` is never a column; it only sets ``include_tags`` when
        the search is restricted to mentors. Without a projection every
        returnable field is selected, ``tags`` included.
        """
        if projection is None:
            projection = self.schema.default_projection

        names: list[str] = list(self.schema.always_returned)
        wants_tags = False
        for name in projection:
            if name in self.schema.virtual:
                wants_tags = wants_tags or name == "tags"
                continue
            if name in self.schema.secret or name in names:
                continue
            self._column(name)
            names.append(name)

        columns = []
        for name in names:
            column = self._column(name)
            if not isinstance(column.type, String):
                columns.append(column)
            else:
                columns.append(func.coalesce(column, "").label(name))

        statement = select(*columns)
        clauses = self._where(search)
        if clauses:
            statement = statement.where(and_(*clauses))

        return SelectStatement(
            statement=statement,
            has_predicate=bool(clauses),
            include_tags=wants_tags and is_mentor_search(search),
        )

    def build_update(
        self,
        search: Mapping[str, Any],
        updates: Mapping[str, Any],
    ) -> UpdateStatement:
        """Build an UPDATE; a ``tags`` entry is split off for the reconciler."""
        tags = None
        values: dict[str, Any] = {}
        for name, value in updates.items():
            if name == "tags":
                tags = list(value) if value is not None else None
                continue
            self._column(name)
            values[name] = value

        clauses = self._where(search)
        statement = None
        if values:
            statement = update(self.table).values(**values)
            if clauses:
                statement = statement.where(and_(*clauses))

        return UpdateStatement(statement=statement, has_predicate=bool(clauses), tags=tags)

    def fetch(
        self,
        session: Session,
        search: Mapping[str, Any],
        projection: Sequence[str] | None = None,
    ) -> tuple[list[dict[str, Any]], SelectStatement]:
        """Run a SELECT and return decoded rows with the statement used."""
        built = self.build_select(search, projection)
        if not built.has_predicate:
            logger.debug("Unrestricted users scan")
        with storage_errors():
            result = session.execute(built.statement)
            rows = [decode_row(row) for row in result.mappings()]
        return rows, built

    def update(
        self,
        session: Session,
        search: Mapping[str, Any],
        updates: Mapping[str, Any],
    ) -> tuple[int, UpdateStatement]:
        """Run an UPDATE if any column changes; return (rowcount, statement)."""
        built = self.build_update(search, updates)
        if built.statement is None:
            return 0, built
        with storage_errors():
            result = session.execute(built.statement)
        return result.rowcount, built
