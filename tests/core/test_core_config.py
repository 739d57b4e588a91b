"""
Tests for core.config — Engine settings.
"""

import pytest
from django.test import override_settings

from core.config import EngineSettings, load_engine_settings


class TestEngineSettingsDefaults:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.lock_timeout_seconds == 2.0
        assert settings.operation_deadline_seconds is None
        assert settings.stats_queue_size == 1024
        assert settings.stats_bucket_seconds == 60
        assert settings.ledger_failure_threshold == 3
        assert settings.retry_max_attempts == 3

    def test_frozen(self):
        settings = EngineSettings()
        with pytest.raises(AttributeError):
            settings.stats_queue_size = 1

    def test_to_dict_roundtrips(self):
        settings = EngineSettings(stats_queue_size=8)
        assert EngineSettings.from_mapping(settings.to_dict()) == settings


class TestEngineSettingsValidation:
    @pytest.mark.parametrize("field_name, value", [
        ("lock_timeout_seconds", 0),
        ("operation_deadline_seconds", -1),
        ("stats_queue_size", 0),
        ("stats_bucket_seconds", 0),
        ("ledger_failure_threshold", 0),
        ("retry_max_attempts", 0),
        ("retry_base_delay_seconds", -0.1),
    ])
    def test_rejects_out_of_range(self, field_name, value):
        with pytest.raises(ValueError):
            EngineSettings(**{field_name: value})


class TestFromMapping:
    def test_keys_are_case_insensitive(self):
        settings = EngineSettings.from_mapping({"STATS_QUEUE_SIZE": 16})
        assert settings.stats_queue_size == 16

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown engine setting"):
            EngineSettings.from_mapping({"lock_timeout": 1})


class TestLoadFromDjango:
    def test_reads_tally_setting(self):
        with override_settings(TALLY={"lock_timeout_seconds": 0.5}):
            assert load_engine_settings().lock_timeout_seconds == 0.5

    def test_missing_setting_uses_defaults(self):
        with override_settings(TALLY={}):
            assert load_engine_settings() == EngineSettings()
