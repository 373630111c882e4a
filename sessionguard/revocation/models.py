from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, field_validator


class RevocationRecord(BaseModel):
    """A revoked credential, keyed by the fingerprint of the raw token.

    ``expires_at`` is the credential's own expiry and doubles as the store TTL.
    """

    model_config = ConfigDict(frozen=True)

    token_fingerprint: str
    user_id: str
    revoked_at: datetime
    expires_at: datetime

    @field_validator("revoked_at", "expires_at")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("timestamps must be timezone-aware")
        return value

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def remaining(self, now: datetime) -> timedelta:
        """Time left before the record is moot (zero when already expired)."""
        return max(self.expires_at - now, timedelta(0))
