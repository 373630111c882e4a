"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-with-at-least-32-characters")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUDIT_SINK", "log")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402

from sessionguard.audit.schemas import AuditEvent  # noqa: E402
from sessionguard.revocation.exceptions import StoreUnavailable  # noqa: E402
from sessionguard.revocation.models import RevocationRecord  # noqa: E402
from sessionguard.revocation.service import RevocationService  # noqa: E402


class FakeClock:
    """Controllable UTC clock shared by the service and the fake store."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryDurableStore:
    """Durable store double that honours per-key TTL against a FakeClock.

    ``fail_get``/``fail_set``/``fail_index`` make the matching call raise
    StoreUnavailable, standing in for a Redis outage or timeout.
    """

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: dict[str, tuple[RevocationRecord, datetime]] = {}
        # user_id -> {fingerprint: expiry}, pruned on every write like the Redis sorted set
        self._users: dict[str, dict[str, datetime]] = {}
        self.fail_get = False
        self.fail_set = False
        self.fail_index = False
        self.set_calls = 0

    async def set(self, fingerprint: str, record: RevocationRecord, ttl: timedelta) -> None:
        self.set_calls += 1
        if self.fail_set:
            raise StoreUnavailable("redis set falhou: TimeoutError")
        self._data[fingerprint] = (record, self._clock() + ttl)
        self._index(record.user_id, fingerprint, record.expires_at)

    async def get(self, fingerprint: str) -> RevocationRecord | None:
        if self.fail_get:
            raise StoreUnavailable("redis get falhou: TimeoutError")
        entry = self._data.get(fingerprint)
        if entry is None:
            return None
        record, expires = entry
        if expires <= self._clock():
            del self._data[fingerprint]
            return None
        return record

    async def user_fingerprints(self, user_id: str) -> set[str]:
        if self.fail_index:
            raise StoreUnavailable("redis zrangebyscore falhou: ConnectionError")
        now = self._clock()
        return {fp for fp, expires in self._users.get(user_id, {}).items() if expires > now}

    async def ping(self) -> bool:
        if self.fail_get:
            raise StoreUnavailable("redis ping falhou: ConnectionError")
        return True

    def contains(self, fingerprint: str) -> bool:
        entry = self._data.get(fingerprint)
        return entry is not None and entry[1] > self._clock()

    def expiry_of(self, fingerprint: str) -> datetime:
        return self._data[fingerprint][1]

    def seed(self, record: RevocationRecord) -> None:
        """Simulate a revocation written by another process."""
        self._data[record.token_fingerprint] = (record, record.expires_at)
        self._index(record.user_id, record.token_fingerprint, record.expires_at)

    def index_size(self, user_id: str) -> int:
        return len(self._users.get(user_id, {}))

    def _index(self, user_id: str, fingerprint: str, expires_at: datetime) -> None:
        now = self._clock()
        index = self._users.setdefault(user_id, {})
        index[fingerprint] = expires_at
        for fp in [fp for fp, expires in index.items() if expires <= now]:
            del index[fp]


class RecordingAuditSink:
    def __init__(self):
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def durable(clock):
    return InMemoryDurableStore(clock)


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
async def service(durable, audit_sink, clock):
    svc = RevocationService(
        durable,
        audit_sink=audit_sink,
        clock=clock,
        resync_max_attempts=3,
        resync_backoff=0.01,
    )
    yield svc
    await svc.stop()
