"""Tests for settings, exceptions, audit logging and shared helpers."""

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from neo_rbac.config.constants import AuditEventType, AuditOutcome
from neo_rbac.config.logging_config import LogLevel, get_format_string, get_log_level_from_verbosity
from neo_rbac.config.settings import RbacSettings
from neo_rbac.core.exceptions import (
    DatabaseError,
    DependencyUnavailableError,
    UnknownPermissionError,
    create_error_response,
)
from neo_rbac.features.audit import AuditEvent, LoggingAuditEmitter
from neo_rbac.utils.datetime import ensure_utc, is_expired, parse_iso8601
from neo_rbac.utils.uuid import generate_uuid_v7


class TestRbacSettings:
    """Test environment-driven settings."""

    def test_defaults(self):
        settings = RbacSettings(_env_file=None)
        assert settings.db_schema == "rbac"
        assert settings.cache_enabled is False
        assert settings.cache_ttl_seconds == 5
        assert settings.hierarchy_min_movable_level == 1
        assert settings.hierarchy_max_level == 6

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("NEO_RBAC_CACHE_TTL_SECONDS", "30")
        monkeypatch.setenv("NEO_RBAC_DB_SCHEMA", "authz")
        settings = RbacSettings(_env_file=None)
        assert settings.cache_ttl_seconds == 30
        assert settings.db_schema == "authz"

    def test_cache_ttl_is_seconds_not_minutes(self):
        with pytest.raises(PydanticValidationError):
            RbacSettings(_env_file=None, cache_ttl_seconds=300)

    def test_schema_must_be_identifier(self):
        with pytest.raises(PydanticValidationError):
            RbacSettings(_env_file=None, db_schema="rbac; DROP TABLE x")

    def test_hierarchy_range_consistent(self):
        with pytest.raises(PydanticValidationError):
            RbacSettings(_env_file=None, hierarchy_min_movable_level=4, hierarchy_max_level=3)


class TestLoggingConfig:
    """Test logging helpers."""

    def test_verbosity_mapping(self):
        assert get_log_level_from_verbosity("quiet") == LogLevel.ERROR.value
        assert get_log_level_from_verbosity("VERBOSE") == LogLevel.INFO.value
        assert get_log_level_from_verbosity("unknown") == LogLevel.WARNING.value

    def test_json_format(self):
        assert get_format_string("json").startswith('{"time"')


class TestExceptions:
    """Test the exception hierarchy."""

    def test_error_response(self):
        response = create_error_response(UnknownPermissionError(["b.x", "a.y"]))
        assert response["error"]["code"] == "UnknownPermissionError"
        assert response["error"]["details"] == {"permissions": ["a.y", "b.x"]}

    def test_database_error_is_dependency_unavailable(self):
        error = DatabaseError("boom", operation="sweep_expired")
        assert isinstance(error, DependencyUnavailableError)
        assert error.details["operation"] == "sweep_expired"


class TestLoggingAuditEmitter:
    """Test the default audit sink."""

    async def test_emits_one_json_line(self, caplog):
        emitter = LoggingAuditEmitter(logger_name="tests.audit")
        event = AuditEvent(
            type=AuditEventType.ROLE_ASSIGNED,
            tenant_id="tenant-a",
            outcome=AuditOutcome.SUCCESS,
            actor_id="admin-1",
            target_id="person-1",
            detail={"role_type": "TRAINER"},
        )
        with caplog.at_level(logging.INFO, logger="tests.audit"):
            await emitter.emit(event)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["type"] == "role.assigned"
        assert payload["outcome"] == "success"
        assert payload["detail"] == {"role_type": "TRAINER"}


class TestUtils:
    """Test datetime and uuid helpers."""

    def test_naive_datetime_treated_as_utc(self):
        naive = datetime(2024, 1, 1, 12, 0)
        assert ensure_utc(naive).tzinfo is timezone.utc

    def test_expiry_equal_to_now_is_expired(self):
        now = datetime.now(timezone.utc)
        assert is_expired(now, now)
        assert not is_expired(now + timedelta(seconds=1), now)
        assert not is_expired(None, now)

    def test_parse_trailing_z(self):
        assert parse_iso8601("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_uuid_v7(self):
        first = generate_uuid_v7()
        assert uuid.UUID(first).version == 7
