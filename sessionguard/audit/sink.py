"""Destinations for security events emitted by the revocation service.

The service treats every sink as fire-and-forget: it catches and logs
whatever ``record`` raises, so a sink may simply let errors propagate.
"""

import logging
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sessionguard.audit.schemas import AuditEvent
from sessionguard.audit.service import write_audit_log

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    async def record(self, event: AuditEvent) -> None: ...


class DatabaseAuditSink:
    """Writes each event to ``audit_logs`` in its own session."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(self, event: AuditEvent) -> None:
        async with self._session_factory() as db:
            await write_audit_log(
                db,
                action=event.action,
                user_id=event.user_id,
                category=event.category,
                description=event.description,
                token_fingerprint=event.fingerprint,
                revoked_count=event.count,
                detail=event.detail,
                timestamp=event.timestamp,
            )


class LoggingAuditSink:
    async def record(self, event: AuditEvent) -> None:
        logger.info(
            "audit: action=%s category=%s user=%s fp=%s count=%s at=%s",
            event.action,
            event.category,
            event.user_id,
            event.fingerprint,
            event.count,
            event.timestamp.isoformat(),
        )


def build_audit_sink(kind: str) -> AuditSink:
    """Return the sink configured by the ``audit_sink`` setting."""
    if kind == "log":
        return LoggingAuditSink()
    if kind == "database":
        from sessionguard.database import async_session

        return DatabaseAuditSink(async_session)
    raise ValueError(f"audit sink desconhecido: {kind!r}")
