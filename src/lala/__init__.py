"""
LaLA evidence gathering.

Anonymized audit trails for learning analytics models: the datasets a model
version was trained and tested on, the model itself, its predictions and
pseudonymized copies of every LMS table related to the samples.

Usage:
    from lala import LalaConfig, ModelVersionPipeline
    from lala.session import create_lala_engine, get_session
"""

from lala.config import LalaConfig
from lala.exceptions import (
    LalaError,
    InvalidInputError,
    NotFoundError,
    ConfigurationError,
    InsufficientAnonymitySetError,
    MalformedDatasetError,
    StructuralMismatchError,
    NoDataError,
    EvidenceStateError,
    EvidenceStorageError,
)
from lala.anonymize import IdentityMap, Pseudonymizer, RelationGraphWalker, SqlAlchemySchema
from lala.evidence import EvidenceKind, FileEvidenceStore
from lala.models import Base, Evidence, ModelConfig, ModelVersion
from lala.pipeline import ModelVersionPipeline

__version__ = '0.1.0'

__all__ = [
    'LalaConfig',
    'LalaError',
    'InvalidInputError',
    'NotFoundError',
    'ConfigurationError',
    'InsufficientAnonymitySetError',
    'MalformedDatasetError',
    'StructuralMismatchError',
    'NoDataError',
    'EvidenceStateError',
    'EvidenceStorageError',
    'IdentityMap',
    'Pseudonymizer',
    'RelationGraphWalker',
    'SqlAlchemySchema',
    'EvidenceKind',
    'FileEvidenceStore',
    'Base',
    'Evidence',
    'ModelConfig',
    'ModelVersion',
    'ModelVersionPipeline',
]
