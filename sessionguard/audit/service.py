import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from sessionguard.audit.models import AuditLog

logger = logging.getLogger(__name__)


async def write_audit_log(
    db: AsyncSession,
    *,
    action: str,
    user_id: str | None = None,
    category: str = "security",
    description: str | None = None,
    token_fingerprint: str | None = None,
    revoked_count: int | None = None,
    detail: dict | None = None,
    timestamp: datetime | None = None,
) -> AuditLog:
    """Persist an audit log entry."""
    entry = AuditLog(
        action=action,
        user_id=user_id,
        category=category,
        description=description,
        token_fingerprint=token_fingerprint,
        revoked_count=revoked_count,
        detail=detail,
    )
    if timestamp is not None:
        entry.timestamp = timestamp
    db.add(entry)
    await db.commit()
    logger.info(
        "audit: action=%s user=%s fp=%s count=%s",
        action,
        user_id,
        token_fingerprint,
        revoked_count,
    )
    return entry
