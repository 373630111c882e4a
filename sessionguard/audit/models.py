import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from sessionguard.database import Base


class AuditLog(Base):
    """Immutable audit trail for token revocation events."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    # Owner of the revoked credential (an opaque string, not a local FK)
    user_id: Mapped[str | None] = mapped_column(String(255), index=True)
    # What happened
    action: Mapped[str] = mapped_column(String(100), index=True)
    category: Mapped[str] = mapped_column(String(50), default="security")
    description: Mapped[str | None] = mapped_column(Text)
    # Shortened fingerprint, never the raw token
    token_fingerprint: Mapped[str | None] = mapped_column(String(64))
    revoked_count: Mapped[int | None] = mapped_column(Integer)
    # Extra structured detail (JSON)
    detail: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))
