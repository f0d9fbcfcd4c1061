"""Tests for field-level redaction."""

import pytest

from neo_rbac.core.exceptions import UnknownResourceError, ValidationError
from neo_rbac.features.permissions.entities.permission_grant import AdvancedPermission
from neo_rbac.features.permissions.services.field_redaction import FieldRedactionFilter


class TestFieldRedactionFilter:
    """Test the redaction transforms."""

    @pytest.fixture
    def redaction(self):
        return FieldRedactionFilter()

    def test_allowed_fields_keep_exactly_those_plus_id(self, redaction, company_record):
        filtered = redaction.filter(company_record, "companies", ["ragioneSociale", "citta"])
        assert filtered == {"id": "company-1", "ragioneSociale": "Acme S.r.l.", "citta": "Milano"}

    def test_default_drops_sensitive_fields(self, redaction, company_record):
        filtered = redaction.filter(company_record, "companies")
        for sensitive in ("partitaIva", "codiceFiscale", "mail", "pec", "telefono", "iban", "sdi"):
            assert sensitive not in filtered
        assert filtered["ragioneSociale"] == "Acme S.r.l."
        assert filtered["tenantId"] == "tenant-a"

    def test_undeclared_fields_dropped_by_default(self, redaction, company_record):
        record = dict(company_record, internalScore=42)
        assert "internalScore" not in redaction.filter(record, "companies")

    def test_idempotent(self, redaction, company_record):
        once = redaction.filter(company_record, "companies", ["ragioneSociale"])
        assert redaction.filter(once, "companies", ["ragioneSociale"]) == once
        default_once = redaction.filter(company_record, "companies")
        assert redaction.filter(default_once, "companies") == default_once

    def test_missing_fields_are_not_invented(self, redaction):
        assert redaction.filter({"id": "c1"}, "companies", ["ragioneSociale"]) == {"id": "c1"}

    def test_filter_many(self, redaction, company_record):
        records = [company_record, dict(company_record, id="company-2")]
        filtered = redaction.filter_many(records, "companies", ["citta"])
        assert filtered == [{"id": "company-1", "citta": "Milano"}, {"id": "company-2", "citta": "Milano"}]

    def test_filter_payload_envelope(self, redaction, company_record):
        payload = {"data": [company_record], "total": 1}
        filtered = redaction.filter_payload(payload, "companies", ["citta"])
        assert filtered == {"data": [{"id": "company-1", "citta": "Milano"}], "total": 1}
        assert payload["data"][0]["partitaIva"] == "01234567890"

    def test_filter_payload_scalar_passthrough(self, redaction):
        assert redaction.filter_payload("plain", "companies") == "plain"

    def test_visible_fields_default(self, redaction):
        visible = redaction.visible_fields("companies")
        assert visible[0] == "id"
        assert "partitaIva" not in visible

    def test_unknown_resource_raises(self, redaction):
        with pytest.raises(UnknownResourceError):
            redaction.filter({"id": "x"}, "spaceships")


class TestWildcardAllowedFields:
    """Test the '*' allowed_fields entry."""

    def test_wildcard_means_non_sensitive_fields(self, company_record):
        permission = AdvancedPermission(resource="companies", action="read", scope="company", allowed_fields=["*"])
        assert permission.allowed_fields is None

        filtered = FieldRedactionFilter().filter(company_record, "companies", permission.allowed_fields)
        assert filtered["ragioneSociale"] == "Acme S.r.l."
        assert "partitaIva" not in filtered
        assert "iban" not in filtered

    def test_wildcard_survives_serialization(self):
        permission = AdvancedPermission.from_dict({
            "resource": "companies", "action": "read", "scope": "company", "allowed_fields": ["*"],
        })
        assert permission.to_dict()["allowed_fields"] is None

    def test_wildcard_mixed_with_named_fields_rejected(self):
        with pytest.raises(ValidationError):
            AdvancedPermission(resource="companies", action="read", scope="company", allowed_fields=["*", "iban"])
