"""Audit emitter writing one JSON line per event to the ``neo_rbac.audit`` logger."""

import json
import logging

from ..entities import AuditEvent


class LoggingAuditEmitter:
    """Default audit sink for services without a dedicated audit store."""

    def __init__(self, logger_name: str = "neo_rbac.audit"):
        self._logger = logging.getLogger(logger_name)

    async def emit(self, event: AuditEvent) -> None:
        self._logger.info(json.dumps(event.to_dict(), default=str, sort_keys=True))
