"""
Dataset shaping helpers.

A dataset has exactly one top-level key, the analysis interval key (the
time-splitting method name). Its value is an ordered mapping from sample id
to row. The row stored under the sample id "0" is the header (indicator names
followed by the target name); every other row holds the indicator values
followed by the target value:

    {
        'upcoming_week': {
            '0':    ['indicator_a', 'indicator_b', 'target'],
            '12-1': [0.5, -1, 1],
            '12-2': [0.1, 1, 0],
            '15-1': [-0.3, 1, 0],
        }
    }

Sample ids are "<entity id>-<interval part>"; the interval part is optional.
"""

import csv
import io
import math
import random
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence

from lala.exceptions import (
    MalformedDatasetError,
    NoDataError,
    StructuralMismatchError,
)


HEADER_KEY = '0'
SAMPLEID_COLUMN = 'sampleid'

Row = List[Any]
Dataset = Dict[str, Dict[str, Row]]


class SampleId(NamedTuple):
    """A sample id split into its entity id and optional interval part."""
    entity_id: int
    interval_part: Optional[str] = None

    @classmethod
    def parse(cls, sampleid) -> 'SampleId':
        return cls(_to_entity_id(get_id_part(sampleid)), get_interval_part(sampleid))

    def __str__(self):
        if self.interval_part is None:
            return str(self.entity_id)
        return f"{self.entity_id}-{self.interval_part}"


def _to_entity_id(id_part: str) -> int:
    try:
        return int(id_part)
    except ValueError:
        raise MalformedDatasetError(f"Sample id part '{id_part}' is not an integer id") from None


def _is_header_key(key) -> bool:
    return str(key) == HEADER_KEY


# ============================================================================
# Structure accessors
# ============================================================================

def get_analysis_interval_key(dataset: Mapping) -> str:
    """Return the single top-level key of a dataset."""
    if len(dataset) != 1:
        raise MalformedDatasetError(
            f"A dataset needs exactly one analysis interval key, found {len(dataset)}"
        )
    return next(iter(dataset))


def get_first_row(dataset: Mapping) -> Row:
    """Return the header row."""
    samples = dataset[get_analysis_interval_key(dataset)]
    for key, row in samples.items():
        if _is_header_key(key):
            return row
    raise MalformedDatasetError("Dataset has no header row")


def get_rows(dataset: Mapping) -> Dict[str, Row]:
    """Return all data rows keyed by sample id, in their original order."""
    samples = dataset[get_analysis_interval_key(dataset)]
    return {key: row for key, row in samples.items() if not _is_header_key(key)}


def get_id_part(sampleid) -> str:
    return str(sampleid).split('-', 1)[0]


def get_interval_part(sampleid) -> Optional[str]:
    parts = str(sampleid).split('-', 1)
    if len(parts) > 1:
        return parts[1]
    return None


def get_sampleids_used(dataset: Mapping) -> List[str]:
    """Sample ids of all data rows, de-duplicated in first-seen order."""
    seen = {}
    for sampleid in get_rows(dataset):
        seen.setdefault(str(sampleid), None)
    return list(seen)


def get_ids_used(dataset: Mapping) -> List[int]:
    """
    Entity ids referenced by the data rows.

    Several samples (one per analysis interval) usually point at the same
    entity, so the ids are de-duplicated while keeping first-seen order.
    """
    seen = {}
    for sampleid in get_rows(dataset):
        seen.setdefault(_to_entity_id(get_id_part(sampleid)), None)
    return list(seen)


# ============================================================================
# Reshaping
# ============================================================================

def shuffle_preserving_keys(rows: Mapping, rng=None) -> Dict:
    """Return a copy of rows whose iteration order is random; values stay with their keys."""
    rng = rng or random
    keys = list(rows)
    if len(keys) < 2:
        return dict(rows)
    rng.shuffle(keys)
    return {key: rows[key] for key in keys}


def get_shuffled(dataset: Mapping, rng=None) -> Dataset:
    """
    Shuffle the data rows of a dataset while keeping the header first.

    Raises:
        MalformedDatasetError: If the dataset has no data rows
    """
    if not dataset:
        raise MalformedDatasetError("Dataset to be shuffled can not be empty.")

    rows = get_rows(dataset)
    if not rows:
        raise MalformedDatasetError(
            "Dataset to be shuffled needs at least one data row besides the header."
        )
    return replace_rows(dataset, shuffle_preserving_keys(rows, rng))


def replace_rows(dataset: Mapping, rows: Mapping) -> Dataset:
    """Same analysis interval key and header, new data rows."""
    key = get_analysis_interval_key(dataset)
    samples = {HEADER_KEY: list(get_first_row(dataset))}
    samples.update(rows)
    return {key: samples}


def build(analysis_interval_key: str, header: Sequence, sampleids: Sequence,
          xs: Sequence[Sequence], ys: Sequence) -> Dataset:
    """Assemble a dataset from parallel sample id, x and y sequences."""
    if not len(sampleids) == len(xs) == len(ys):
        raise MalformedDatasetError("sampleids, xs and ys must have the same length")

    samples = {HEADER_KEY: list(header)}
    for sampleid, x, y in zip(sampleids, xs, ys):
        samples[str(sampleid)] = list(x) + [y]
    return {analysis_interval_key: samples}


def separate_x_y(rows: Mapping) -> Dict[str, list]:
    """Split data rows into indicator values (x) and target values (y)."""
    xs = []
    ys = []
    for row in rows.values():
        xs.append(list(row[:-1]))
        ys.append(row[-1])
    return {'x': xs, 'y': ys}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def split_train_test(dataset: Mapping, test_size: float) -> Dict[str, Dataset]:
    """
    Split an (already shuffled) dataset into test and training portions.

    The first round(test_size * n) data rows become the test set, the
    remaining rows the training set.

    Args:
        dataset: Dataset to split
        test_size: Relative size of the test set, between 0 and 1

    Returns:
        {'training': Dataset, 'test': Dataset}

    Raises:
        NoDataError: If fewer than 1 test row or 2 training rows would remain
    """
    rows = list(get_rows(dataset).items())
    n_test = _round_half_up(test_size * len(rows))
    if n_test < 1:
        raise NoDataError(
            "Not enough data available for creating a training and testing split. "
            "Need at least 1 datapoint for testing, and 2 for training."
        )

    test_rows = dict(rows[:n_test])
    training_rows = dict(rows[n_test:])
    if len(training_rows) < 2:
        raise NoDataError(
            "Not enough data available for creating a training split. Need at least 2 datapoints."
        )

    return {
        'training': replace_rows(dataset, training_rows),
        'test': replace_rows(dataset, test_rows),
    }


def pseudonymize_dataset(dataset: Mapping, idmap, rng=None) -> Dataset:
    """
    Rewrite every sample id with its pseudonym and shuffle the rows.

    The interval part of each sample id is kept. Row order is randomized so
    that the position of a row does not give away the original id.
    """
    new_rows = {}
    for sampleid, row in get_rows(dataset).items():
        new_rows[idmap.get_pseudonym_sampleid(sampleid)] = list(row)
    return replace_rows(dataset, shuffle_preserving_keys(new_rows, rng))


# ============================================================================
# Validation and set operations
# ============================================================================

def validate(dataset: Mapping) -> None:
    """
    Check that a dataset can be used as evidence.

    Raises:
        MalformedDatasetError: If the header is empty, there are no data
            rows, the header has a sampleid column, indicator or target
            columns are missing, or a row width differs from the header
    """
    header = get_first_row(dataset)
    if not header:
        raise MalformedDatasetError("Dataset header is empty.")

    names = [str(column).lower() for column in header]
    if SAMPLEID_COLUMN in names:
        raise MalformedDatasetError(
            "Dataset header must not contain a 'sampleid' column, sample ids are the row keys."
        )
    if not any('indicator' in name for name in names):
        raise MalformedDatasetError("Dataset header has no indicator column.")
    if not any('target' in name for name in names):
        raise MalformedDatasetError("Dataset header has no target column.")

    rows = get_rows(dataset)
    if not rows:
        raise MalformedDatasetError("Dataset has no data rows.")

    for sampleid, row in rows.items():
        if len(row) != len(header):
            raise MalformedDatasetError(
                f"Row {sampleid} has {len(row)} values, the header has {len(header)} columns."
            )


def merge(a: Mapping, b: Mapping) -> Dataset:
    """
    Union of the rows of two datasets with the same structure.

    Rows of a win when both datasets contain the same sample id.

    Raises:
        StructuralMismatchError: If interval keys or headers differ
    """
    key = get_analysis_interval_key(a)
    if key != get_analysis_interval_key(b):
        raise StructuralMismatchError(
            f"Analysis intervals differ: '{key}' and '{get_analysis_interval_key(b)}'"
        )
    if list(get_first_row(a)) != list(get_first_row(b)):
        raise StructuralMismatchError("Dataset headers differ.")

    rows = dict(get_rows(a))
    for sampleid, row in get_rows(b).items():
        rows.setdefault(sampleid, row)
    return replace_rows(a, rows)


def diff(a: Mapping, b: Mapping) -> Dataset:
    """
    Rows of a whose sample ids do not appear in b.

    Raises:
        StructuralMismatchError: If interval keys differ
    """
    key = get_analysis_interval_key(a)
    if key != get_analysis_interval_key(b):
        raise StructuralMismatchError(
            f"Analysis intervals differ: '{key}' and '{get_analysis_interval_key(b)}'"
        )
    excluded = {str(sampleid) for sampleid in get_rows(b)}
    rows = {sampleid: row for sampleid, row in get_rows(a).items() if str(sampleid) not in excluded}
    return replace_rows(a, rows)


# ============================================================================
# CSV format
# ============================================================================

def to_csv(dataset: Mapping) -> str:
    """Serialize: a sampleid column followed by the header columns, one line per sample."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow([SAMPLEID_COLUMN] + list(get_first_row(dataset)))
    for sampleid, row in get_rows(dataset).items():
        writer.writerow([sampleid] + list(row))
    return buffer.getvalue()


def _parse_value(value: str):
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def from_csv(text: str, analysis_interval_key: str) -> Dataset:
    """
    Parse a dataset serialized with to_csv, e.g. an uploaded dataset.

    Raises:
        MalformedDatasetError: If the first column is not sampleid
    """
    reader = csv.reader(io.StringIO(text))
    try:
        columns = next(reader)
    except StopIteration:
        raise MalformedDatasetError("Dataset file is empty.") from None

    if not columns or columns[0].strip().lower() != SAMPLEID_COLUMN:
        raise MalformedDatasetError("First column of a dataset file must be 'sampleid'.")

    samples = {HEADER_KEY: [column.strip() for column in columns[1:]]}
    for line in reader:
        if not line:
            continue
        samples[line[0].strip()] = [_parse_value(value.strip()) for value in line[1:]]
    return {analysis_interval_key: samples}
