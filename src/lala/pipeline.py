"""
Model version creation: one evidence-gathering pass.

Steps, in order:

    gather_dataset            -> dataset
    anonymize_dataset         -> dataset_anonymized
    gather_related_data       -> related_data_anonymized (one per related table)
    split_training_test_data  -> training_dataset, test_dataset
    train                     -> model
    predict                   -> predictions_dataset
    finish

Every step stores its evidence through the evidence store and records
metadata in the lala_evidence table. A failing step aborts its evidence item
(record and blob are removed), writes the error message to the version and
re-raises, so no later step runs.
"""

import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from lala import dataset as dataset_helper
from lala.analytics import Analyser, AnalyticsModel, Predictor, UploadedDataset
from lala.anonymize.database import RowReader, SchemaIntrospector
from lala.anonymize.idmap import IdentityMap
from lala.anonymize.pseudonymizer import Pseudonymizer
from lala.anonymize.relations import PRIMARY_ID_COLUMN, RelationGraphWalker, unique_ids
from lala.config import LalaConfig
from lala.evidence.kinds import EvidenceKind
from lala.evidence.storage import FileEvidenceStore
from lala.exceptions import ConfigurationError, EvidenceStateError
from lala.models import Evidence, ModelConfig, ModelVersion


logger = logging.getLogger(__name__)


class ModelVersionPipeline:
    """Runs the evidence-gathering steps for one model version."""

    def __init__(self, session: Session, version: ModelVersion, store: FileEvidenceStore,
                 analyser: Analyser, introspector: Optional[SchemaIntrospector] = None,
                 reader: Optional[RowReader] = None, predictor: Optional[Predictor] = None,
                 config: Optional[LalaConfig] = None, rng=None):
        """
        Args:
            session: Session holding the version and evidence records
            version: The model version being created
            store: Blob store for serialized evidence
            analyser: Produces the dataset and names the samples' origin table
            introspector: Schema access for related-table discovery
            reader: Row access for related-table discovery
            predictor: Trains the classifier
            config: Settings (anonymity threshold, pseudonym range)
            rng: random.Random-like source for all shuffles and pseudonyms
        """
        self.session = session
        self.version = version
        self.store = store
        self.analyser = analyser
        self.introspector = introspector
        self.reader = reader
        self.predictor = predictor
        self.config = config or LalaConfig()
        self.rng = rng or random
        self.pseudonymizer = Pseudonymizer(rng=self.rng, min_anonymity_set=self.config.min_anonymity_set)

        # kind -> {evidence id -> raw data}
        self.evidence: Dict[EvidenceKind, Dict[int, Any]] = {}
        # table name -> identity map, written once per table
        self.idmaps: Dict[str, IdentityMap] = {}

    @classmethod
    def create(cls, session: Session, config_record: ModelConfig, store: FileEvidenceStore,
               analyser: Analyser, config: Optional[LalaConfig] = None, **kwargs) -> 'ModelVersionPipeline':
        """Create the version scaffold for a model configuration and a pipeline for it."""
        config = config or LalaConfig()
        version = ModelVersion.create_scaffold(session, config_record, config.relative_test_set_size)
        logger.info(f"Created model version {version.id} for config {config_record.id}")
        return cls(session, version, store, analyser, config=config, **kwargs)

    @classmethod
    def create_for_model(cls, session: Session, model: AnalyticsModel, store: FileEvidenceStore,
                         analyser: Analyser, **kwargs) -> 'ModelVersionPipeline':
        """Create a version from the model's up-to-date configuration, adding one if needed."""
        config_record = ModelConfig.get_or_create_for_model(session, model)
        return cls.create(session, config_record, store, analyser, **kwargs)

    # ------------------------------------------------------------------
    # Evidence bookkeeping
    # ------------------------------------------------------------------

    def add(self, kind: EvidenceKind, options: Dict[str, Any]) -> Any:
        """
        Collect, serialize and store one evidence item.

        Returns:
            The collected raw data
        """
        table_name = options.get('table_name') if kind.is_related_data else None
        evidence = Evidence.create_scaffold(self.session, self.version.id, kind.value)
        logger.info(f"Version {self.version.id}: collecting {kind.value}"
                    + (f" for {table_name}" if table_name else ''))

        try:
            data = kind.collect(options)
            payload = kind.serialize(data)
            evidence.serialized_file_location = self.store.put(
                self.version.id, kind.value, evidence.id, payload, kind.file_type, table_name
            )
            evidence.finish()
            self.session.flush()
        except Exception as e:
            self._abort(evidence)
            self.register_error(e)
            raise

        self.evidence.setdefault(kind, {})[evidence.id] = data
        logger.info(f"Version {self.version.id}: stored {kind.value} as evidence {evidence.id}")
        return data

    def _abort(self, evidence: Evidence):
        if evidence.serialized_file_location:
            self.store.delete(evidence.serialized_file_location)
        self.session.delete(evidence)
        self.session.flush()
        self.session.expire(self.version, ['evidence'])

    def register_error(self, error: Exception):
        """Record an error message on the version."""
        logger.error(f"Version {self.version.id}: {error}")
        self.version.error = str(error)
        # Must survive a rollback by the caller.
        self.session.commit()

    def has_evidence(self, kind: EvidenceKind) -> bool:
        return bool(self.evidence.get(kind))

    def get_single_evidence(self, kind: EvidenceKind) -> Any:
        """Raw data of the first evidence item of a kind."""
        if not self.has_evidence(kind):
            raise EvidenceStateError(f"No {kind.value} evidence has been gathered yet.")
        return next(iter(self.evidence[kind].values()))

    def _new_idmap(self, ids: Sequence, entity_type: str) -> IdentityMap:
        return IdentityMap.create_from_ids(
            ids,
            entity_type=entity_type,
            rng=self.rng,
            floor=self.config.pseudonym_floor,
            multiplier_range=self.config.pseudonym_multiplier,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def gather_dataset(self, contexts: Optional[Sequence[Any]] = None,
                       dataset: Optional[dataset_helper.Dataset] = None):
        """Gather the labelled dataset, or take an uploaded one."""
        analyser = self.analyser
        if dataset is not None:
            analyser = UploadedDataset(dataset, self.analyser.samples_origin,
                                       self.analyser.processes_user_data())
        if contexts is None:
            contexts = self.version.context_id_list

        return self.add(EvidenceKind.DATASET, {'analyser': analyser, 'contexts': contexts})

    def anonymize_dataset(self):
        """Pseudonymize the sample ids of the gathered dataset."""
        data = self.get_single_evidence(EvidenceKind.DATASET)
        origin = self.analyser.samples_origin
        idmap = self._new_idmap(dataset_helper.get_ids_used(data), origin)
        self.idmaps[origin] = idmap

        return self.add(EvidenceKind.DATASET_ANONYMIZED, {
            'dataset': data,
            'idmap': idmap,
            'processes_user_data': self.analyser.processes_user_data(),
            'min_anonymity_set': self.config.min_anonymity_set,
            'rng': self.rng,
        })

    def gather_related_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Gather pseudonymized rows of every table related to the samples.

        Identity maps for all discovered tables are built before any related
        data is pseudonymized, since a foreign key may point at a table that
        comes later in the graph.

        Returns:
            table name -> pseudonymized rows
        """
        if self.introspector is None or self.reader is None:
            raise ConfigurationError("Gathering related data needs a schema introspector and a row reader.")

        data = self.get_single_evidence(EvidenceKind.DATASET)
        origin = self.analyser.samples_origin
        origin_ids = dataset_helper.get_ids_used(data)

        walker = RelationGraphWalker(self.introspector, self.reader)
        graph = walker.discover(origin, origin_ids, {origin: origin_ids})

        rows_by_table = {}
        for table, ids in graph.items():
            rows = self.reader.fetch_rows_by_ids(table, PRIMARY_ID_COLUMN, ids)
            if not rows:
                logger.info(f"Version {self.version.id}: no rows found in {table}, skipping")
                continue
            rows_by_table[table] = rows

        for table, rows in rows_by_table.items():
            if table not in self.idmaps:
                self.idmaps[table] = self._new_idmap(unique_ids(row[PRIMARY_ID_COLUMN] for row in rows), table)

        related = {}
        for table, rows in rows_by_table.items():
            related[table] = self.add(EvidenceKind.RELATED_DATA_ANONYMIZED, {
                'table_name': table,
                'rows': rows,
                'idmaps': self.idmaps,
                'pseudonymizer': self.pseudonymizer,
            })
        return related

    def split_training_test_data(self):
        """Shuffle the anonymized dataset and split it into training and test data."""
        data = self.get_single_evidence(EvidenceKind.DATASET_ANONYMIZED)
        options = {
            'data': dataset_helper.get_shuffled(data, rng=self.rng),
            'test_size': self.version.relative_test_set_size,
        }
        self.add(EvidenceKind.TRAINING_DATASET, options)
        self.add(EvidenceKind.TEST_DATASET, options)

    def train(self):
        if self.predictor is None:
            raise ConfigurationError("No predictor configured for training.")
        training = self.get_single_evidence(EvidenceKind.TRAINING_DATASET)
        return self.add(EvidenceKind.MODEL, {'data': training, 'predictor': self.predictor})

    def predict(self):
        test = self.get_single_evidence(EvidenceKind.TEST_DATASET)
        model = self.get_single_evidence(EvidenceKind.MODEL)
        return self.add(EvidenceKind.PREDICTIONS_DATASET, {'model': model, 'data': test})

    def finish(self):
        """Mark the model version as finished."""
        self.version.time_creation_finished = datetime.now()
        self.session.flush()
        logger.info(f"Finished model version {self.version.id}")

    def run(self, contexts: Optional[Sequence[Any]] = None,
            dataset: Optional[dataset_helper.Dataset] = None) -> ModelVersion:
        """
        Execute every step in order.

        Raises:
            LalaError: The first failure, after it was recorded on the version
        """
        try:
            self.gather_dataset(contexts=contexts, dataset=dataset)
            self.anonymize_dataset()
            self.gather_related_data()
            self.split_training_test_data()
            self.train()
            self.predict()
            self.finish()
        except Exception as e:
            if self.version.error != str(e):
                self.register_error(e)
            raise
        return self.version
