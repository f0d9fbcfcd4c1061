"""Audit entities package."""

from .audit_event import AuditEvent
from .protocols import AuditEmitter

__all__ = [
    "AuditEvent",
    "AuditEmitter",
]
