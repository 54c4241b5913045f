"""
Evidence items gathered while creating a model version.
"""

from .kinds import EvidenceKind
from .storage import FileEvidenceStore, build_filename, get_tablename_from_location

__all__ = [
    'EvidenceKind',
    'FileEvidenceStore',
    'build_filename',
    'get_tablename_from_location',
]
