from datetime import datetime, timezone

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEvent(BaseModel):
    action: str
    user_id: str
    category: str = "security"
    description: str | None = None
    fingerprint: str | None = None
    count: int | None = None
    detail: dict | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
