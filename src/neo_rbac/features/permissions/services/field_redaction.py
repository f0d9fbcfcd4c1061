"""Field-level redaction of outbound records.

Pure, side-effect free transforms:

* explicit ``allowed_fields``: keep the intersection with the record's fields,
  plus the identifier field;
* no ``allowed_fields``: keep the fields the resource spec declares
  non-sensitive. Sensitive and undeclared fields are dropped, not masked.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..entities.permission_catalog import DEFAULT_PERMISSION_CATALOG, PermissionCatalog


class FieldRedactionFilter:
    """Applies allowed-field lists and sensitive-field metadata to records."""

    def __init__(self, permission_catalog: PermissionCatalog = DEFAULT_PERMISSION_CATALOG):
        self.permission_catalog = permission_catalog

    def visible_fields(self, resource: str, allowed_fields: Optional[Sequence[str]] = None) -> Tuple[str, ...]:
        """Field names a record of ``resource`` may expose, identifier first."""
        spec = self.permission_catalog.resource_spec(resource)
        if not allowed_fields:
            return spec.non_sensitive_fields
        return tuple(dict.fromkeys((spec.identifier_field, *allowed_fields)))

    def filter(
        self,
        record: Mapping[str, Any],
        resource: str,
        allowed_fields: Optional[Sequence[str]] = None
    ) -> Dict[str, Any]:
        keep = frozenset(self.visible_fields(resource, allowed_fields))
        return {key: value for key, value in record.items() if key in keep}

    def filter_many(
        self,
        records: Iterable[Mapping[str, Any]],
        resource: str,
        allowed_fields: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        keep = frozenset(self.visible_fields(resource, allowed_fields))
        return [{key: value for key, value in record.items() if key in keep} for record in records]

    def filter_payload(self, payload: Any, resource: str, allowed_fields: Optional[Sequence[str]] = None) -> Any:
        """Filter a single record, a list of records, or a ``{"data": ...}`` envelope."""
        if isinstance(payload, list):
            return self.filter_many(payload, resource, allowed_fields)
        if isinstance(payload, Mapping) and "data" in payload and isinstance(payload["data"], (list, Mapping)):
            envelope = dict(payload)
            envelope["data"] = self.filter_payload(payload["data"], resource, allowed_fields)
            return envelope
        if isinstance(payload, Mapping):
            return self.filter(payload, resource, allowed_fields)
        return payload
