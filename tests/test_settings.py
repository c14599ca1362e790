"""Tests for configuration and audit logging."""

import pytest
from pydantic import ValidationError

from cashbook.audit import AuditLogger
from cashbook.config import (
    DEFAULT_MONGODB_URI,
    EmbeddedStoreSettings,
    MongoSettings,
    Settings,
    StorageSettings,
    validate_all_settings,
)
from cashbook.models.audit import AuditEventBuilder


class TestStorageSettings:
    """Backend selection from the environment."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STORAGE_STORAGE_TYPE", raising=False)
        monkeypatch.delenv("STORAGE_FALLBACK_CASCADE", raising=False)
        settings = StorageSettings(_env_file=None)
        assert settings.storage_type == "embedded"
        assert settings.fallback_cascade is True

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("STORAGE_STORAGE_TYPE", "  MongoDB ")
        monkeypatch.setenv("STORAGE_FALLBACK_CASCADE", "false")
        settings = StorageSettings(_env_file=None)
        assert settings.storage_type == "mongodb"
        assert settings.fallback_cascade is False

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            StorageSettings(storage_type="postgres", _env_file=None)


class TestBackendSettings:
    """Embedded and MongoDB settings."""

    def test_embedded_schema_version_must_be_positive(self):
        with pytest.raises(ValidationError):
            EmbeddedStoreSettings(schema_version=0, _env_file=None)

    def test_mongodb_prefix(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://db.internal:27017")
        monkeypatch.setenv("MONGODB_DB_NAME", "books")
        settings = MongoSettings(_env_file=None)
        assert settings.db_name == "books"
        assert settings.is_configured

    def test_default_uri_is_not_configured(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        assert MongoSettings(_env_file=None).uri == DEFAULT_MONGODB_URI
        assert not MongoSettings(_env_file=None).is_configured

    def test_validate_all_reports_bad_group(self, monkeypatch):
        monkeypatch.setenv("STORAGE_STORAGE_TYPE", "cassandra")
        results = validate_all_settings(Settings())
        assert results["storage"] is False
        assert "storage_error" in results
        assert results["mongodb"] is True


class TestAuditLogger:
    """In-memory audit history."""

    def test_history_is_newest_first_and_bounded(self):
        audit = AuditLogger(history_size=2)
        for category_id in (1, 2, 3):
            assert audit.log(AuditEventBuilder.category_deleted(category_id)) is True

        events = audit.get_recent_events()
        assert [e.entity_id for e in events] == ["3", "2"]

    def test_log_error_records_system_error(self):
        audit = AuditLogger()
        audit.log_error("load categories", "database locked", {"backend": "embedded"})

        [event] = audit.get_recent_events()
        assert event.error_message == "database locked"
        assert event.details == {"backend": "embedded"}
