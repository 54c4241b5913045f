"""
Bidirectional mapping between original record ids and pseudonyms.

One IdentityMap exists per table (or entity type) for the duration of a
model version's evidence-gathering pass. Maps are never modified after
construction.
"""

import random
from typing import Iterable, List, Optional, Sequence, Tuple

from lala import dataset as dataset_helper
from lala.exceptions import InvalidInputError, NotFoundError


DEFAULT_PSEUDONYM_FLOOR = 100
DEFAULT_MULTIPLIER_RANGE = (3, 10)


def _normalize(value):
    """Treat '42' and 42 as the same id."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip('-').isdigit():
            return int(stripped)
        return stripped
    return value


class IdentityMap:
    """Injective mapping original id <-> pseudonym for one table."""

    def __init__(self, original_ids: Sequence, pseudonyms: Sequence, entity_type: Optional[str] = None):
        """
        Args:
            original_ids: Unique original ids
            pseudonyms: Unique pseudonyms, positionally paired with original_ids
            entity_type: Table or entity the ids belong to, e.g. 'user'

        Raises:
            InvalidInputError: On empty input, duplicates or differing lengths
        """
        original_ids = [_normalize(value) for value in original_ids]
        pseudonyms = [_normalize(value) for value in pseudonyms]

        if not original_ids:
            raise InvalidInputError("Can not create an id map without ids.")
        if len(original_ids) != len(pseudonyms):
            raise InvalidInputError(
                f"Must provide as many pseudonyms as original ids "
                f"({len(pseudonyms)} pseudonyms for {len(original_ids)} ids)."
            )
        if len(set(original_ids)) != len(original_ids):
            raise InvalidInputError("Original ids must be unique.")
        if len(set(pseudonyms)) != len(pseudonyms):
            raise InvalidInputError("Pseudonyms must be unique.")

        self.entity_type = entity_type
        self._original_ids: Tuple = tuple(original_ids)
        self._pseudonyms: Tuple = tuple(pseudonyms)
        self._pseudonym_of = dict(zip(self._original_ids, self._pseudonyms))
        self._original_of = dict(zip(self._pseudonyms, self._original_ids))

    @classmethod
    def create(cls, original_ids: Sequence, pseudonyms: Sequence,
               entity_type: Optional[str] = None) -> 'IdentityMap':
        return cls(original_ids, pseudonyms, entity_type)

    @classmethod
    def create_from_ids(cls, ids: Iterable, entity_type: Optional[str] = None, rng=None,
                        floor: int = DEFAULT_PSEUDONYM_FLOOR,
                        multiplier_range: Tuple[int, int] = DEFAULT_MULTIPLIER_RANGE) -> 'IdentityMap':
        """
        Generate random pseudonyms for a set of ids.

        Pseudonyms are drawn without replacement from [floor, floor * k * n],
        with n the number of ids and k a random multiplier from
        multiplier_range. The sparse, randomly sized codomain keeps pseudonyms
        from being guessed by proximity or ordering.

        Args:
            ids: Unique original ids
            entity_type: Table or entity the ids belong to
            rng: random.Random-like source (defaults to the random module)
            floor: Smallest possible pseudonym
            multiplier_range: Inclusive bounds for the random multiplier k

        Raises:
            InvalidInputError: If ids is empty or contains duplicates
        """
        rng = rng or random
        original_ids = list(ids)
        if not original_ids:
            raise InvalidInputError("Can not create an id map without ids.")

        # Order of the original ids must not carry over to the pseudonyms.
        rng.shuffle(original_ids)

        n = len(original_ids)
        k = rng.randint(*multiplier_range)
        pool = range(floor, floor * k * n + 1)
        pseudonyms = rng.sample(pool, n)
        rng.shuffle(pseudonyms)

        return cls(original_ids, pseudonyms, entity_type)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_pseudonym(self, original_id):
        try:
            return self._pseudonym_of[_normalize(original_id)]
        except (KeyError, TypeError):
            raise NotFoundError(
                f"Id map for '{self.entity_type or 'unknown'}' is incomplete. No pseudonym found for id."
            ) from None

    def get_originalid(self, pseudonym):
        try:
            return self._original_of[_normalize(pseudonym)]
        except (KeyError, TypeError):
            raise NotFoundError(
                f"Id map for '{self.entity_type or 'unknown'}' has no such pseudonym."
            ) from None

    def has_original_id(self, original_id) -> bool:
        try:
            return _normalize(original_id) in self._pseudonym_of
        except TypeError:
            return False

    def get_pseudonym_sampleid(self, sampleid) -> str:
        """
        Map '<entity id>-<interval part>' to '<pseudonym>-<interval part>'.

        Raises:
            NotFoundError: If the entity id has no pseudonym
        """
        entity_id = dataset_helper.get_id_part(sampleid)
        pseudonym = self.get_pseudonym(entity_id)
        interval_part = dataset_helper.get_interval_part(sampleid)
        if interval_part is not None:
            return f"{pseudonym}-{interval_part}"
        return str(pseudonym)

    @property
    def original_ids(self) -> List:
        return list(self._original_ids)

    @property
    def pseudonyms(self) -> List:
        return list(self._pseudonyms)

    def count(self) -> int:
        return len(self._original_ids)

    def __len__(self):
        return self.count()

    def contains(self, other: 'IdentityMap') -> bool:
        """
        Disjointness check used by tests on independently generated maps.

        True only if none of other's original ids are present in this map and
        every checked id maps to the same pseudonym in both maps. Once the
        ids are disjoint no pseudonym comparison is left to fail, so this is
        a pure no-overlap test despite its name.
        """
        for original_id in other.original_ids:
            if self.has_original_id(original_id):
                return False
        return True

    def __repr__(self):
        return f"<IdentityMap(entity_type={self.entity_type!r}, count={self.count()})>"
