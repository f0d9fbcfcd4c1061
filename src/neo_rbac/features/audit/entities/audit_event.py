"""Audit event shape emitted by the authorization engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ....config.constants import AuditEventType, AuditOutcome
from ....utils.datetime import format_iso8601, utc_now


@dataclass(frozen=True)
class AuditEvent:
    """A single authorization or role-mutation event."""

    type: AuditEventType
    tenant_id: str
    outcome: AuditOutcome
    actor_id: Optional[str] = None
    target_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)
    detail: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "actor_id": self.actor_id,
            "target_id": self.target_id,
            "tenant_id": self.tenant_id,
            "timestamp": format_iso8601(self.timestamp),
            "outcome": self.outcome.value,
            "detail": dict(self.detail),
        }
