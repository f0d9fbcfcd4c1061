"""Protocol interfaces for the audit feature."""

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from .audit_event import AuditEvent


@runtime_checkable
class AuditEmitter(Protocol):
    """Receives audit events. Formatting and storage are the sink's concern."""

    @abstractmethod
    async def emit(self, event: AuditEvent) -> None:
        ...
