"""
Pseudonymization of related-table rows.

Every id column of a row is rewritten through the identity map of the table
it refers to, so references between independently pseudonymized tables stay
consistent. Output rows are shuffled so that row position can not be
correlated with the original insertion or query order.
"""

import logging
import random
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from lala.anonymize.idmap import IdentityMap
from lala.anonymize.relations import PRIMARY_ID_COLUMN, unique_ids
from lala.exceptions import ConfigurationError, InsufficientAnonymitySetError


logger = logging.getLogger(__name__)

DEFAULT_MIN_ANONYMITY_SET = 3
USER_MARKER = 'user'


def _candidate(column: str) -> Optional[str]:
    position = column.lower().find('id')
    if position < 0:
        return None
    return column[:position]


class Pseudonymizer:
    """Rewrites id and foreign-key columns of related-data rows."""

    def __init__(self, rng=None, min_anonymity_set: int = DEFAULT_MIN_ANONYMITY_SET):
        """
        Args:
            rng: random.Random-like source used for shuffling
            min_anonymity_set: Fewest distinct subjects allowed in user data
        """
        self.rng = rng or random
        self.min_anonymity_set = min_anonymity_set

    @staticmethod
    def resolve_referenced_table(column: str, idmaps: Mapping[str, IdentityMap]) -> Optional[str]:
        """
        Find the idmap a foreign-key-shaped column refers to.

        'courseid' resolves to 'course' if there is a course map. Otherwise
        the longest idmap key the candidate ends with is used, so that
        'relateduserid' resolves to 'user'. None means the column is not
        treated as a foreign key.
        """
        candidate = _candidate(column)
        if not candidate:
            return None
        if candidate in idmaps:
            return candidate

        lowered = candidate.lower()
        matches = [table for table in idmaps if table and lowered.endswith(table.lower())]
        if not matches:
            return None
        return max(matches, key=len)

    def _is_user_reference(self, column: str, idmaps: Mapping[str, IdentityMap]) -> bool:
        target = self.resolve_referenced_table(column, idmaps) or _candidate(column)
        return bool(target) and USER_MARKER in target.lower()

    def ensure_anonymity(self, rows: Sequence[Mapping[str, Any]], idmaps: Mapping[str, IdentityMap],
                         table_name: str) -> None:
        """
        Abort when user data would involve too few distinct subjects.

        Applies to tables whose name contains "user" (distinct ids) and to
        every column recognised as a user id reference (distinct values). A
        reference column holding only null or empty values involves no
        subject and passes.

        Raises:
            InsufficientAnonymitySetError: If fewer than min_anonymity_set
                distinct ids or values are involved
        """
        if USER_MARKER in table_name.lower():
            found = len(unique_ids(row.get(PRIMARY_ID_COLUMN) for row in rows))
            if found < self.min_anonymity_set:
                logger.warning(f"Aborting {table_name}: only {found} distinct subject(s)")
                raise InsufficientAnonymitySetError(table_name, found, self.min_anonymity_set)

        columns = {}
        for row in rows:
            for column in row:
                columns.setdefault(column, None)

        for column in columns:
            if column == PRIMARY_ID_COLUMN or not self._is_user_reference(column, idmaps):
                continue
            found = len(unique_ids(row.get(column) for row in rows))
            if found == 0:
                # No subject referenced at all.
                continue
            if found < self.min_anonymity_set:
                logger.warning(f"Aborting {table_name}: only {found} distinct subject(s) in {column}")
                raise InsufficientAnonymitySetError(table_name, found, self.min_anonymity_set, column=column)

    def pseudonymize_row(self, row: Mapping[str, Any], idmaps: Mapping[str, IdentityMap],
                         table_name: str) -> Dict[str, Any]:
        """Return a new row with every id column replaced by its pseudonym."""
        substitutions = {}
        for column, value in row.items():
            if value is None or value == '':
                continue
            if column == PRIMARY_ID_COLUMN:
                substitutions[column] = idmaps[table_name].get_pseudonym(value)
                continue
            referenced = self.resolve_referenced_table(column, idmaps)
            if referenced is None:
                continue
            substitutions[column] = idmaps[referenced].get_pseudonym(value)

        new_row = dict(row)
        new_row.update(substitutions)
        return new_row

    def pseudonymize(self, rows: Iterable[Mapping[str, Any]], idmaps: Mapping[str, IdentityMap],
                     table_name: str) -> List[Dict[str, Any]]:
        """
        Pseudonymize the rows of one related table.

        Args:
            rows: Raw rows as column -> value mappings
            idmaps: One identity map per discovered table
            table_name: Table the rows come from

        Returns:
            New rows in random order

        Raises:
            ConfigurationError: If there is no identity map for table_name
            NotFoundError: If an id has no pseudonym in its map
        """
        if table_name not in idmaps:
            raise ConfigurationError(f"No id map available for table '{table_name}'.")

        result = [self.pseudonymize_row(row, idmaps, table_name) for row in rows]
        self.rng.shuffle(result)

        logger.debug(f"Pseudonymized {len(result)} row(s) of {table_name}")
        return result
