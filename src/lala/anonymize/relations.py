"""
Discovery of tables related to a set of root records.

Foreign keys are recognised by column name only: a column such as
``courseid`` or ``userid`` whose part before "id" names an existing table
is followed one hop at a time, and the values found in that column for the
relevant rows become the relevant ids of the referenced table. Tables
without an ``id`` column can not be looked up by id and are neither
recorded nor walked.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from lala.anonymize.database import RowReader, SchemaIntrospector


logger = logging.getLogger(__name__)

PRIMARY_ID_COLUMN = 'id'
MIN_COLUMN_NAME_LENGTH = 3


def column_name(column) -> str:
    """Accept ColumnInfo tuples, {'name': ...} mappings or plain strings."""
    if isinstance(column, Mapping):
        return column['name']
    return getattr(column, 'name', column)


def referenced_table_candidate(name: str) -> Optional[str]:
    """
    Table name a column might point to, e.g. 'course' for 'courseid'.

    Returns None for columns shorter than 3 characters or without "id"
    (case-insensitive). The candidate is whatever precedes the first "id",
    so it may be empty (e.g. 'idnumber').
    """
    if len(name) < MIN_COLUMN_NAME_LENGTH:
        return None
    position = name.lower().find('id')
    if position < 0:
        return None
    return name[:position]


def unique_ids(values: Iterable) -> List:
    """Drop null/empty values and duplicates, keeping first-seen order."""
    seen = {}
    for value in values:
        if value is None or value == '':
            continue
        seen.setdefault(value, None)
    return list(seen)


class RelationGraphWalker:
    """Builds the relation graph table -> relevant ids from one root table."""

    def __init__(self, introspector: SchemaIntrospector, reader: RowReader):
        self.introspector = introspector
        self.reader = reader

    def discover(self, root_table: str, relevant_ids: Iterable,
                 accumulated: Optional[Mapping[str, List]] = None) -> Dict[str, List]:
        """
        Recursively find every table reachable from root_table.

        The first discovery of a table wins: once a table is in the graph it
        is neither updated nor walked again. This bounds the recursion to the
        schema's foreign-key depth and stops it on cyclic references.

        Args:
            root_table: Table whose rows are the audit subjects
            relevant_ids: Ids of root_table rows to start from
            accumulated: Graph found so far, normally {root_table: relevant_ids}

        Returns:
            New mapping table name -> de-duplicated relevant ids
        """
        relevant_ids = unique_ids(relevant_ids)
        if accumulated is None:
            graph = {root_table: relevant_ids}
        else:
            graph = {table: list(ids) for table, ids in accumulated.items()}

        available = {}
        for table in self.introspector.list_tables():
            available.setdefault(table.lower(), table)
            available[table] = table

        self._walk(root_table, relevant_ids, graph, available, {})

        logger.info(f"Discovered {len(graph) - 1} table(s) related to {root_table}")
        return graph

    def _column_names(self, table: str, cache: Dict[str, List[str]]) -> List[str]:
        if table not in cache:
            cache[table] = [column_name(column) for column in self.introspector.list_columns(table)]
        return cache[table]

    def _walk(self, table: str, relevant_ids: List, graph: Dict[str, List], available: Dict[str, str],
              columns: Dict[str, List[str]]):
        if not relevant_ids:
            return

        names = self._column_names(table, columns)
        if PRIMARY_ID_COLUMN not in names:
            logger.debug(f"{table} has no {PRIMARY_ID_COLUMN} column, not following its references")
            return

        for name in names:
            candidate = referenced_table_candidate(name)
            if not candidate:
                continue

            related_table = available.get(candidate) or available.get(candidate.lower())
            if related_table is None or related_table in graph:
                continue
            if PRIMARY_ID_COLUMN not in self._column_names(related_table, columns):
                logger.debug(f"{table}.{name}: {related_table} has no {PRIMARY_ID_COLUMN} column, skipping")
                continue

            rows = self.reader.fetch_rows_by_ids(table, PRIMARY_ID_COLUMN, relevant_ids,
                                                 [PRIMARY_ID_COLUMN, name])
            related_ids = unique_ids(row[name] for row in rows)
            if not related_ids:
                # Not recorded, so another path may still reach this table.
                continue

            logger.debug(f"{table}.{name} -> {related_table} ({len(related_ids)} id(s))")
            graph[related_table] = related_ids
            self._walk(related_table, related_ids, graph, available, columns)
