"""
Tests for ModelConfig creation from host analytics models.

Tests:
- Settings copied from the model, including name and default fallbacks
- Reuse of up-to-date configurations, new ones after model changes
- Syncing a list of models
"""

import pytest

from fixtures.fakes import FakeAnalyticsModel
from lala.exceptions import ConfigurationError
from lala.models import ModelConfig


class TestCreateForModel:

    def test_copies_model_settings(self, session):
        model = FakeAnalyticsModel(7, name='Students at risk', predictions_processor='mlbackend_python',
                                   context_ids=[1, 2])
        config = ModelConfig.create_for_model(session, model)

        assert config.id is not None
        assert config.model_id == 7
        assert config.name == 'Students at risk'
        assert config.target == 'course_dropout'
        assert config.analysis_interval == 'upcoming_week'
        assert config.predictions_processor == 'mlbackend_python'
        assert config.indicator_list == ['indicator_activity', 'indicator_forum']
        assert config.default_context_id_list == [1, 2]

    def test_unnamed_models_are_numbered(self, session):
        model = FakeAnalyticsModel(7)
        first = ModelConfig.create_for_model(session, model)
        second = ModelConfig.create_for_model(session, model)
        assert (first.name, second.name) == ('config7/0', 'config7/1')

    def test_defaults_fill_unset_settings(self, session):
        model = FakeAnalyticsModel(8, analysis_interval='', predictions_processor=None)
        config = ModelConfig.create_for_model(session, model, default_analysis_interval='past_month',
                                              default_predictions_processor='mlbackend_php')
        assert config.analysis_interval == 'past_month'
        assert config.predictions_processor == 'mlbackend_php'

    def test_missing_analysis_interval(self, session):
        with pytest.raises(ConfigurationError, match="analysis interval"):
            ModelConfig.create_for_model(session, FakeAnalyticsModel(9, analysis_interval=None))

    def test_no_contexts(self, session):
        config = ModelConfig.create_for_model(session, FakeAnalyticsModel(7, context_ids=[]))
        assert config.default_context_ids is None
        assert config.default_context_id_list == []


class TestGetOrCreateForModel:

    def test_reuses_up_to_date_config(self, session):
        model = FakeAnalyticsModel(7)
        first = ModelConfig.get_or_create_for_model(session, model)
        again = ModelConfig.get_or_create_for_model(session, model)
        assert again.id == first.id
        assert len(ModelConfig.get_all_for_model_id(session, 7)) == 1

    def test_changed_indicators_create_new_config(self, session):
        model = FakeAnalyticsModel(7)
        first = ModelConfig.get_or_create_for_model(session, model)

        model.indicators = ['indicator_activity']
        second = ModelConfig.get_or_create_for_model(session, model)

        assert second.id != first.id
        assert [c.id for c in ModelConfig.get_all_for_model_id(session, 7)] == [first.id, second.id]
        assert ModelConfig.get_related_configs(session, model) == [second]

    def test_changed_analysis_interval_create_new_config(self, session):
        model = FakeAnalyticsModel(7)
        first = ModelConfig.get_or_create_for_model(session, model)
        model.analysis_interval = 'past_month'
        assert ModelConfig.get_or_create_for_model(session, model).id != first.id

    def test_unset_processor_matches_defaulted_config(self, session):
        model = FakeAnalyticsModel(7)
        first = ModelConfig.get_or_create_for_model(session, model, default_predictions_processor='mlbackend_php')
        assert first.predictions_processor == 'mlbackend_php'
        assert ModelConfig.get_or_create_for_model(session, model).id == first.id

    def test_other_models_are_ignored(self, session):
        ModelConfig.get_or_create_for_model(session, FakeAnalyticsModel(7))
        assert ModelConfig.get_related_configs(session, FakeAnalyticsModel(8)) == []
        assert ModelConfig.get_all_for_model_id(session, 8) == []


def test_sync_with_models(session):
    up_to_date = FakeAnalyticsModel(1)
    ModelConfig.create_for_model(session, up_to_date)
    models = [
        up_to_date,
        FakeAnalyticsModel(2),
        FakeAnalyticsModel(3, target='no_teaching', is_static=True),
    ]

    created = ModelConfig.sync_with_models(session, models)

    assert [config.model_id for config in created] == [2]
    assert ModelConfig.get_all_for_model_id(session, 3) == []
    assert ModelConfig.sync_with_models(session, models) == []
