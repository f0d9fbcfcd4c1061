"""Audit feature for neo-rbac.

Feature-First layout:
- entities/: the audit event shape and the emitter protocol
- adapters/: emitter implementations
"""

from .adapters import LoggingAuditEmitter
from .entities import AuditEmitter, AuditEvent

__all__ = [
    "AuditEmitter",
    "AuditEvent",
    "LoggingAuditEmitter",
]
