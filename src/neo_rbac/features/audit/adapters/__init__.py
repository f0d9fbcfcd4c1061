"""Audit emitter adapters."""

from .logging_emitter import LoggingAuditEmitter

__all__ = [
    "LoggingAuditEmitter",
]
