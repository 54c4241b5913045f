"""
Database collaborators for relation discovery and related-data collection.

The walker and the pseudonymizer only depend on the SchemaIntrospector and
RowReader protocols. SqlAlchemySchema implements both against any database
SQLAlchemy can reflect (MySQL/MariaDB for a production LMS, SQLite in tests).
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Protocol, Sequence, Set

from sqlalchemy import MetaData, Table, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError

from lala.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class ColumnInfo(NamedTuple):
    name: str
    type: str
    unique: bool = False


class SchemaIntrospector(Protocol):
    def list_tables(self) -> Set[str]:
        ...

    def list_columns(self, table: str) -> List[ColumnInfo]:
        ...


class RowReader(Protocol):
    def fetch_rows_by_ids(self, table: str, id_column: str, ids: Sequence,
                          selected_columns: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        ...


def _chunks(values: Sequence, size: int) -> Iterator[List]:
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


class SqlAlchemySchema:
    """Schema introspection and row access through a SQLAlchemy engine."""

    def __init__(self, engine: Engine, id_chunk_size: int = 1000):
        """
        Args:
            engine: SQLAlchemy engine bound to the LMS database
            id_chunk_size: Maximum number of ids per IN clause
        """
        self.engine = engine
        self.id_chunk_size = id_chunk_size
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}

    def list_tables(self) -> Set[str]:
        return set(inspect(self.engine).get_table_names())

    def list_columns(self, table: str) -> List[ColumnInfo]:
        """
        Columns of a table in schema order.

        A column counts as unique when it alone forms the primary key, a
        unique constraint or a unique index.
        """
        inspector = inspect(self.engine)
        try:
            columns = inspector.get_columns(table)
        except NoSuchTableError:
            raise ConfigurationError(f"Table '{table}' does not exist") from None

        unique_columns = set()
        primary_key = inspector.get_pk_constraint(table).get('constrained_columns') or []
        if len(primary_key) == 1:
            unique_columns.update(primary_key)
        for constraint in inspector.get_unique_constraints(table):
            if len(constraint['column_names']) == 1:
                unique_columns.update(constraint['column_names'])
        for index in inspector.get_indexes(table):
            if index.get('unique') and len(index['column_names']) == 1:
                unique_columns.update(index['column_names'])

        return [
            ColumnInfo(column['name'], str(column['type']), column['name'] in unique_columns)
            for column in columns
        ]

    def _reflect(self, table: str) -> Table:
        if table not in self._tables:
            try:
                self._tables[table] = Table(table, self._metadata, autoload_with=self.engine)
            except NoSuchTableError:
                raise ConfigurationError(f"Table '{table}' does not exist") from None
        return self._tables[table]

    def fetch_rows_by_ids(self, table: str, id_column: str, ids: Iterable,
                          selected_columns: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """
        Fetch the rows of table whose id_column value is in ids.

        Args:
            table: Table name
            id_column: Column matched against ids, usually 'id'
            ids: Values to match
            selected_columns: Columns to return (None = all columns)

        Returns:
            Rows as plain dicts, ordered by id_column

        Raises:
            ConfigurationError: If the table or a column does not exist
        """
        reflected = self._reflect(table)
        names = list(selected_columns) if selected_columns else [column.name for column in reflected.columns]

        missing = [name for name in [id_column] + names if name not in reflected.c]
        if missing:
            raise ConfigurationError(f"Table '{table}' has no column(s): {', '.join(missing)}")

        ids = list(dict.fromkeys(ids))
        if not ids:
            return []

        key = reflected.c[id_column]
        rows = []
        with self.engine.connect() as conn:
            for chunk in _chunks(ids, self.id_chunk_size):
                stmt = (
                    select(*[reflected.c[name] for name in names])
                    .where(key.in_(chunk))
                    .order_by(key)
                )
                rows.extend(dict(row._mapping) for row in conn.execute(stmt))

        if len(ids) > self.id_chunk_size and id_column in names:
            rows.sort(key=lambda row: row[id_column])

        logger.debug(f"Fetched {len(rows)} row(s) from {table} for {len(ids)} id(s)")
        return rows
