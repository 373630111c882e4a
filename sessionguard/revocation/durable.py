"""Durable revocation tier backed by Redis.

Each revoked token is stored as ``<prefix><fingerprint>`` holding the record
as JSON, with a TTL equal to the remaining lifetime of the token.  Once the
token would have expired naturally, Redis evicts the key on its own.

A per-user sorted set ``<prefix>user:<user_id>`` indexes fingerprints by
expiry so that bulk revocation can find tokens revoked by other processes.
Every write drops members whose expiry has passed, and the key's own TTL only
ever grows, so the set holds live fingerprints only and vanishes with the
longest record it points to.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime, timedelta, timezone
from typing import Protocol, TypeVar

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from sessionguard.revocation.exceptions import StoreUnavailable
from sessionguard.revocation.fingerprint import short_fingerprint
from sessionguard.revocation.models import RevocationRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNKNOWN_USER = "unknown"


class DurableRevocationStore(Protocol):
    """Shared, expiring store every process instance can reach.

    Implementations raise ``StoreUnavailable`` on any transport problem;
    a missing key is ``None``, never an error.
    """

    async def set(self, fingerprint: str, record: RevocationRecord, ttl: timedelta) -> None: ...

    async def get(self, fingerprint: str) -> RevocationRecord | None: ...

    async def user_fingerprints(self, user_id: str) -> set[str]: ...

    async def ping(self) -> bool: ...


class RedisRevocationStore:
    def __init__(self, client: redis.Redis, *, key_prefix: str = "blacklist:", timeout: float = 0.5):
        self._redis = client
        self._prefix = key_prefix
        self._timeout = timeout

    def _key(self, fingerprint: str) -> str:
        return f"{self._prefix}{fingerprint}"

    def _user_key(self, user_id: str) -> str:
        return f"{self._prefix}user:{user_id}"

    async def _call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (RedisError, asyncio.TimeoutError, OSError) as exc:
            raise StoreUnavailable(f"redis {op} falhou: {type(exc).__name__}") from exc

    async def set(self, fingerprint: str, record: RevocationRecord, ttl: timedelta) -> None:
        ttl_ms = int(ttl.total_seconds() * 1000)
        if ttl_ms <= 0:
            return
        user_key = self._user_key(record.user_id)

        async def _write() -> None:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(self._key(fingerprint), record.model_dump_json(), px=ttl_ms)
                pipe.zadd(user_key, {fingerprint: record.expires_at.timestamp()})
                pipe.zremrangebyscore(user_key, "-inf", record.revoked_at.timestamp())
                # NX covers a fresh key, GT only ever extends it (Redis >= 7)
                pipe.pexpire(user_key, ttl_ms, nx=True)
                pipe.pexpire(user_key, ttl_ms, gt=True)
                await pipe.execute()

        await self._call("set", _write())

    async def get(self, fingerprint: str) -> RevocationRecord | None:
        key = self._key(fingerprint)
        raw = await self._call("get", self._redis.get(key))
        if raw is None:
            return None
        try:
            return RevocationRecord.model_validate_json(raw)
        except ValidationError:
            # The key exists, so the token is revoked whatever the payload says
            logger.warning("Registro de revogação corrompido: fp=%s", short_fingerprint(fingerprint))
            ttl_ms = await self._call("pttl", self._redis.pttl(key))
            now = datetime.now(timezone.utc)
            return RevocationRecord(
                token_fingerprint=fingerprint,
                user_id=_UNKNOWN_USER,
                revoked_at=now,
                expires_at=now + timedelta(milliseconds=max(ttl_ms, 0)),
            )

    async def user_fingerprints(self, user_id: str) -> set[str]:
        now = datetime.now(timezone.utc).timestamp()
        members = await self._call(
            "zrangebyscore", self._redis.zrangebyscore(self._user_key(user_id), f"({now}", "+inf")
        )
        return set(members)

    async def ping(self) -> bool:
        return bool(await self._call("ping", self._redis.ping()))
