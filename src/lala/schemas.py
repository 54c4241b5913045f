"""
Marshmallow-SQLAlchemy schemas for model versions and evidence.

Usage:
    from lala.schemas import ModelVersionSchema

    version_data = ModelVersionSchema().dump(version)
"""

from marshmallow import fields
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema

from lala.evidence.storage import get_tablename_from_location
from lala.models import Evidence, ModelConfig, ModelVersion


class BaseSchema(SQLAlchemyAutoSchema):
    """
    Shared configuration: dump only, foreign keys included.
    """
    class Meta:
        load_instance = False
        include_fk = True


class EvidenceSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = Evidence

    table_name = fields.Method('get_table_name')

    def get_table_name(self, obj):
        if not obj.serialized_file_location:
            return None
        return get_tablename_from_location(obj.serialized_file_location)


class ModelConfigSchema(BaseSchema):
    class Meta(BaseSchema.Meta):
        model = ModelConfig

    indicators = fields.Method('get_indicators')

    def get_indicators(self, obj):
        return obj.indicator_list


class ModelVersionSchema(BaseSchema):
    """Version with its evidence items nested."""
    class Meta(BaseSchema.Meta):
        model = ModelVersion

    context_ids = fields.Method('get_context_ids')
    evidence = fields.Nested(EvidenceSchema, many=True)

    def get_context_ids(self, obj):
        return obj.context_id_list
