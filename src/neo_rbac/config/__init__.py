"""Configuration, logging setup and constants for neo-rbac."""

from .constants import (
    AssignmentStatus,
    AuditEventType,
    AuditOutcome,
    CacheKeys,
    CacheTTL,
    ConditionKind,
    DatabaseDefaults,
    DENY_REASON_PRECEDENCE,
    DenyReason,
    GENERIC_DENY_MESSAGE,
    HierarchyLevels,
    IDENTIFIER_FIELD,
    PermissionScope,
)
from .logging_config import LoggingConfig, LogFormat, LogLevel, LogVerbosity, setup_logging
from .settings import RbacSettings, get_settings

__all__ = [
    # Constants and enums
    "AssignmentStatus",
    "AuditEventType",
    "AuditOutcome",
    "CacheKeys",
    "CacheTTL",
    "ConditionKind",
    "DatabaseDefaults",
    "DENY_REASON_PRECEDENCE",
    "DenyReason",
    "GENERIC_DENY_MESSAGE",
    "HierarchyLevels",
    "IDENTIFIER_FIELD",
    "PermissionScope",

    # Logging
    "LoggingConfig",
    "LogFormat",
    "LogLevel",
    "LogVerbosity",
    "setup_logging",

    # Settings
    "RbacSettings",
    "get_settings",
]
