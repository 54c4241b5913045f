"""
Evidence kinds and their collect/serialize functions.

Each EvidenceKind is bound to a collect(options) function producing the raw
evidence data, a serialize(data) function producing the stored bytes, and
the file type of the stored blob.
"""

import csv
import enum
import io
import logging
import pickle
from typing import Any, Callable, Dict, List, Mapping, NamedTuple

from lala import dataset as dataset_helper
from lala.anonymize.pseudonymizer import DEFAULT_MIN_ANONYMITY_SET, Pseudonymizer
from lala.exceptions import ConfigurationError, InsufficientAnonymitySetError, NoDataError


logger = logging.getLogger(__name__)

PREDICTIONS_HEADER = ['target', 'prediction']


def _require(options: Mapping[str, Any], *names: str):
    missing = [name for name in names if options.get(name) is None]
    if missing:
        raise ConfigurationError(f"Options is missing {', '.join(missing)}.")


# ============================================================================
# Collect functions
# ============================================================================

def collect_dataset(options):
    """options = {analyser, contexts}"""
    _require(options, 'analyser')
    data = options['analyser'].collect_dataset(options.get('contexts'))
    if not data or not dataset_helper.get_rows(data):
        raise NoDataError("No data available. The analyser did not return any samples.")
    dataset_helper.validate(data)
    return data


def collect_dataset_anonymized(options):
    """
    options = {dataset, idmap, processes_user_data, min_anonymity_set, rng}

    Datasets built from user data need at least min_anonymity_set distinct
    entities, otherwise single users could be re-identified by elimination.
    """
    _require(options, 'dataset', 'idmap')
    data = options['dataset']

    if options.get('processes_user_data', True):
        required = options.get('min_anonymity_set', DEFAULT_MIN_ANONYMITY_SET)
        found = len(dataset_helper.get_ids_used(data))
        if found < required:
            raise InsufficientAnonymitySetError('dataset', found, required)

    return dataset_helper.pseudonymize_dataset(data, options['idmap'], rng=options.get('rng'))


def _collect_split(options, portion):
    _require(options, 'data', 'test_size')
    if not options['data']:
        raise NoDataError(f"Dataset is empty. No {portion} data can be extracted from it.")
    return dataset_helper.split_train_test(options['data'], options['test_size'])[portion]


def collect_training_dataset(options):
    """options = {data, test_size}; the rows after the test portion."""
    return _collect_split(options, 'training')


def collect_test_dataset(options):
    """options = {data, test_size}; the first test_size share of rows."""
    return _collect_split(options, 'test')


def collect_model(options):
    """options = {data, predictor}"""
    _require(options, 'data', 'predictor')
    rows = dataset_helper.get_rows(options['data'])
    if len(rows) < 2:
        raise NoDataError("Not enough training data. Need to provide at least 2 datapoints.")

    xy = dataset_helper.separate_x_y(rows)
    if len(xy['x'][0]) < 1:
        raise NoDataError("Need to provide at least one column of indicator values in the training data.")

    return options['predictor'].train(xy['x'], xy['y'])


def collect_predictions_dataset(options):
    """options = {model, data}; rows are [target, prediction] per test sample."""
    _require(options, 'model', 'data')
    data = options['data']
    rows = dataset_helper.get_rows(data)
    if not rows:
        raise NoDataError("Test dataset has no rows to predict.")

    xy = dataset_helper.separate_x_y(rows)
    predicted = list(options['model'].predict(xy['x']))
    if len(predicted) != len(rows):
        raise NoDataError(f"Model returned {len(predicted)} predictions for {len(rows)} samples.")

    return dataset_helper.build(
        dataset_helper.get_analysis_interval_key(data),
        PREDICTIONS_HEADER,
        list(rows),
        [[y] for y in xy['y']],
        predicted,
    )


def collect_related_data(options):
    """options = {table_name, rows}"""
    _require(options, 'table_name', 'rows')
    return [dict(row) for row in options['rows']]


def collect_related_data_anonymized(options):
    """options = {table_name, rows, idmaps, pseudonymizer}"""
    _require(options, 'table_name', 'rows', 'idmaps')
    pseudonymizer = options.get('pseudonymizer') or Pseudonymizer()
    rows = list(options['rows'])
    pseudonymizer.ensure_anonymity(rows, options['idmaps'], options['table_name'])
    return pseudonymizer.pseudonymize(rows, options['idmaps'], options['table_name'])


# ============================================================================
# Serialize functions
# ============================================================================

def serialize_dataset(data) -> bytes:
    return dataset_helper.to_csv(data).encode('utf-8')


def serialize_model(data) -> bytes:
    return pickle.dumps(data)


def serialize_related_data(rows: List[Mapping[str, Any]]) -> bytes:
    """Header from the first row's columns, one line per row."""
    if not rows:
        return b''
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(rows[0]), lineterminator='\n')
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode('utf-8')


# ============================================================================
# Kinds
# ============================================================================

class EvidenceHandler(NamedTuple):
    collect: Callable[[Dict[str, Any]], Any]
    serialize: Callable[[Any], bytes]
    file_type: str


class EvidenceKind(enum.Enum):
    DATASET = 'dataset'
    DATASET_ANONYMIZED = 'dataset_anonymized'
    TRAINING_DATASET = 'training_dataset'
    TEST_DATASET = 'test_dataset'
    MODEL = 'model'
    PREDICTIONS_DATASET = 'predictions_dataset'
    RELATED_DATA = 'related_data'
    RELATED_DATA_ANONYMIZED = 'related_data_anonymized'

    @property
    def handler(self) -> EvidenceHandler:
        return _HANDLERS[self]

    @property
    def file_type(self) -> str:
        return self.handler.file_type

    @property
    def is_related_data(self) -> bool:
        return self in (EvidenceKind.RELATED_DATA, EvidenceKind.RELATED_DATA_ANONYMIZED)

    def collect(self, options: Dict[str, Any]) -> Any:
        return self.handler.collect(options)

    def serialize(self, data: Any) -> bytes:
        return self.handler.serialize(data)


_HANDLERS = {
    EvidenceKind.DATASET: EvidenceHandler(collect_dataset, serialize_dataset, 'csv'),
    EvidenceKind.DATASET_ANONYMIZED: EvidenceHandler(collect_dataset_anonymized, serialize_dataset, 'csv'),
    EvidenceKind.TRAINING_DATASET: EvidenceHandler(collect_training_dataset, serialize_dataset, 'csv'),
    EvidenceKind.TEST_DATASET: EvidenceHandler(collect_test_dataset, serialize_dataset, 'csv'),
    EvidenceKind.MODEL: EvidenceHandler(collect_model, serialize_model, 'pkl'),
    EvidenceKind.PREDICTIONS_DATASET: EvidenceHandler(collect_predictions_dataset, serialize_dataset, 'csv'),
    EvidenceKind.RELATED_DATA: EvidenceHandler(collect_related_data, serialize_related_data, 'csv'),
    EvidenceKind.RELATED_DATA_ANONYMIZED: EvidenceHandler(
        collect_related_data_anonymized, serialize_related_data, 'csv'
    ),
}
