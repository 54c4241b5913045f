#-------------------------------------------------------------------------bh-
# ORM records for model configurations, model versions and their evidence.
#-------------------------------------------------------------------------eh-

import json
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Session, declarative_base, relationship

from lala.analytics import AnalyticsModel
from lala.exceptions import ConfigurationError


#-------------------------------------------------------------------------bm-
Base = declarative_base()


def _load_json_list(value: Optional[str]) -> List:
    if not value:
        return []
    return json.loads(value)


def _dump_json_list(values: Optional[Sequence]) -> str:
    return json.dumps(list(values or []))


def _is_set(value) -> bool:
    return value is not None and value != '' and value != '[]'


# ============================================================================
# Model configuration
# ============================================================================
class ModelConfig(Base):
    """Analytics model settings a version is created from."""
    __tablename__ = 'lala_model_configs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    model_id = Column(Integer, nullable=False)
    name = Column(String(255))
    target = Column(String(255), nullable=False)
    analysis_interval = Column(String(255), nullable=False)
    indicators = Column(Text, nullable=False, default='[]')
    predictions_processor = Column(String(255))
    default_context_ids = Column(Text)

    versions = relationship('ModelVersion', back_populates='config', cascade='all, delete-orphan')

    @property
    def indicator_list(self) -> List[str]:
        return _load_json_list(self.indicators)

    @property
    def default_context_id_list(self) -> List[int]:
        return _load_json_list(self.default_context_ids)

    @classmethod
    def get_by_model_id(cls, session: Session, model_id: int) -> Optional['ModelConfig']:
        return session.query(cls).filter(cls.model_id == model_id).first()

    @classmethod
    def get_all_for_model_id(cls, session: Session, model_id: int) -> List['ModelConfig']:
        """Every configuration ever created for a model, oldest first."""
        return session.query(cls).filter(cls.model_id == model_id).order_by(cls.id).all()

    @classmethod
    def get_related_configs(cls, session: Session, model: AnalyticsModel) -> List['ModelConfig']:
        """
        Configurations whose settings still match the model's.

        Indicators are always compared. Predictions processor and analysis
        interval only when the model sets them, since a configuration of a
        model without them holds a default instead.
        """
        query = session.query(cls).filter(
            cls.model_id == model.id,
            cls.indicators == _dump_json_list(model.indicators),
        )
        if _is_set(model.predictions_processor):
            query = query.filter(cls.predictions_processor == model.predictions_processor)
        if _is_set(model.analysis_interval):
            query = query.filter(cls.analysis_interval == model.analysis_interval)
        return query.order_by(cls.id).all()

    @classmethod
    def create_for_model(cls, session: Session, model: AnalyticsModel,
                         default_analysis_interval: Optional[str] = None,
                         default_predictions_processor: Optional[str] = None) -> 'ModelConfig':
        """
        Insert a configuration holding a copy of the model's current settings.

        Unnamed models get 'config<model id>/<number of earlier configs>'.

        Raises:
            ConfigurationError: If neither the model nor the defaults name an
                analysis interval
        """
        name = model.name
        if not _is_set(name):
            earlier = session.query(cls).filter(cls.model_id == model.id).count()
            name = f"config{model.id}/{earlier}"

        analysis_interval = model.analysis_interval
        if not _is_set(analysis_interval):
            analysis_interval = default_analysis_interval
        if not _is_set(analysis_interval):
            raise ConfigurationError(f"Model {model.id} has no analysis interval and no default was given.")

        predictions_processor = model.predictions_processor
        if not _is_set(predictions_processor):
            predictions_processor = default_predictions_processor

        config = cls(
            model_id=model.id,
            name=name,
            target=model.target,
            analysis_interval=analysis_interval,
            predictions_processor=predictions_processor,
            indicators=_dump_json_list(model.indicators),
            default_context_ids=_dump_json_list(model.context_ids) if model.context_ids else None,
        )
        session.add(config)
        session.flush()
        return config

    @classmethod
    def get_or_create_for_model(cls, session: Session, model: AnalyticsModel, **defaults) -> 'ModelConfig':
        """Oldest up-to-date configuration of the model, created if there is none."""
        related = cls.get_related_configs(session, model)
        if related:
            return related[0]
        return cls.create_for_model(session, model, **defaults)

    @classmethod
    def sync_with_models(cls, session: Session, models: Iterable[AnalyticsModel],
                         **defaults) -> List['ModelConfig']:
        """
        Create configurations for models without an up-to-date one.

        Models flagged ``is_static`` (targets based on assumptions, nothing
        to train) are skipped.

        Returns:
            The newly created configurations
        """
        created = []
        for model in models:
            if getattr(model, 'is_static', False):
                continue
            if not cls.get_related_configs(session, model):
                created.append(cls.create_for_model(session, model, **defaults))
        return created

    def __repr__(self):
        return f"<ModelConfig(id={self.id}, model_id={self.model_id}, target='{self.target}')>"


# ============================================================================
# Model version
# ============================================================================
class ModelVersion(Base):
    """One run of the evidence-gathering pipeline for a configuration."""
    __tablename__ = 'lala_model_versions'

    id = Column(Integer, primary_key=True, autoincrement=True)
    config_id = Column(Integer, ForeignKey('lala_model_configs.id'), nullable=False)
    name = Column(String(255))
    time_creation_started = Column(DateTime, nullable=False, default=datetime.now)
    time_creation_finished = Column(DateTime)
    relative_test_set_size = Column(Float, nullable=False)
    context_ids = Column(Text)
    error = Column(Text)

    config = relationship('ModelConfig', back_populates='versions')
    evidence = relationship('Evidence', back_populates='version', cascade='all, delete-orphan',
                            order_by='Evidence.id')

    @classmethod
    def create_scaffold(cls, session: Session, config: ModelConfig, relative_test_set_size: float,
                        name: Optional[str] = None) -> 'ModelVersion':
        """Insert a new version record using the config's default contexts."""
        version = cls(
            config=config,
            name=name,
            time_creation_started=datetime.now(),
            relative_test_set_size=relative_test_set_size,
            context_ids=config.default_context_ids,
        )
        session.add(version)
        session.flush()
        return version

    @classmethod
    def get_by_id(cls, session: Session, version_id: int) -> Optional['ModelVersion']:
        return session.get(cls, version_id)

    @property
    def context_id_list(self) -> List[int]:
        return _load_json_list(self.context_ids)

    @property
    def is_finished(self) -> bool:
        return self.time_creation_finished is not None

    def evidence_of_kind(self, name: str) -> List['Evidence']:
        return [item for item in self.evidence if item.name == name]

    def __repr__(self):
        return f"<ModelVersion(id={self.id}, config_id={self.config_id}, error={self.error!r})>"


# ============================================================================
# Evidence
# ============================================================================
class Evidence(Base):
    """Metadata of one stored evidence item."""
    __tablename__ = 'lala_evidence'

    id = Column(Integer, primary_key=True, autoincrement=True)
    version_id = Column(Integer, ForeignKey('lala_model_versions.id'), nullable=False)
    name = Column(String(64), nullable=False)
    time_collection_started = Column(DateTime, nullable=False, default=datetime.now)
    time_collection_finished = Column(DateTime)
    serialized_file_location = Column(String(1024))

    version = relationship('ModelVersion', back_populates='evidence')

    @classmethod
    def create_scaffold(cls, session: Session, version_id: int, name: str) -> 'Evidence':
        evidence = cls(version_id=version_id, name=name, time_collection_started=datetime.now())
        session.add(evidence)
        session.flush()
        return evidence

    def finish(self):
        self.time_collection_finished = datetime.now()

    @property
    def is_finished(self) -> bool:
        return self.time_collection_finished is not None

    def __repr__(self):
        return f"<Evidence(id={self.id}, version_id={self.version_id}, name='{self.name}')>"
#-------------------------------------------------------------------------em-
