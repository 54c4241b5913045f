"""
Anonymization engine: identity maps, relation discovery and pseudonymization.
"""

from .idmap import IdentityMap
from .database import ColumnInfo, RowReader, SchemaIntrospector, SqlAlchemySchema
from .relations import RelationGraphWalker, referenced_table_candidate
from .pseudonymizer import Pseudonymizer

__all__ = [
    'IdentityMap',
    'ColumnInfo',
    'RowReader',
    'SchemaIntrospector',
    'SqlAlchemySchema',
    'RelationGraphWalker',
    'referenced_table_candidate',
    'Pseudonymizer',
]
