"""Tests for sessionguard.revocation.durable.RedisRevocationStore."""
import asyncio
import typing
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from sessionguard.revocation.durable import DurableRevocationStore, RedisRevocationStore
from sessionguard.revocation.exceptions import StoreUnavailable
from sessionguard.revocation.models import RevocationRecord

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakePipeline:
    """Records queued commands the way redis.asyncio pipelines do."""

    def __init__(self, fail: bool = False):
        self.commands: list[tuple] = []
        self.fail = fail

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def set(self, *args, **kwargs):
        self.commands.append(("set", args, kwargs))
        return self

    def zadd(self, *args, **kwargs):
        self.commands.append(("zadd", args, kwargs))
        return self

    def zremrangebyscore(self, *args, **kwargs):
        self.commands.append(("zremrangebyscore", args, kwargs))
        return self

    def pexpire(self, *args, **kwargs):
        self.commands.append(("pexpire", args, kwargs))
        return self

    async def execute(self):
        if self.fail:
            raise RedisConnectionError("connection refused")
        return [True] * len(self.commands)


@pytest.fixture
def record():
    return RevocationRecord(
        token_fingerprint="ab" * 32,
        user_id="user-1",
        revoked_at=NOW,
        expires_at=NOW + timedelta(minutes=10),
    )


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def store(client):
    return RedisRevocationStore(client, key_prefix="blacklist:", timeout=0.05)


async def test_set_writes_record_and_user_index(store, client, record):
    pipe = FakePipeline()
    client.pipeline.return_value = pipe

    await store.set(record.token_fingerprint, record, timedelta(minutes=10))

    client.pipeline.assert_called_once_with(transaction=True)
    name, args, kwargs = pipe.commands[0]
    assert name == "set"
    assert args[0] == f"blacklist:{record.token_fingerprint}"
    assert RevocationRecord.model_validate_json(args[1]) == record
    assert kwargs == {"px": 600_000}
    assert pipe.commands[1] == (
        "zadd",
        ("blacklist:user:user-1", {record.token_fingerprint: record.expires_at.timestamp()}),
        {},
    )
    assert pipe.commands[3] == ("pexpire", ("blacklist:user:user-1", 600_000), {"nx": True})
    assert pipe.commands[4] == ("pexpire", ("blacklist:user:user-1", 600_000), {"gt": True})


async def test_set_prunes_index_members_expired_by_write_time(store, client, record):
    pipe = FakePipeline()
    client.pipeline.return_value = pipe

    await store.set(record.token_fingerprint, record, timedelta(minutes=10))

    # Members are scored by expiry, so everything at or below revoked_at is dead
    assert pipe.commands[2] == (
        "zremrangebyscore",
        ("blacklist:user:user-1", "-inf", record.revoked_at.timestamp()),
        {},
    )


async def test_set_with_non_positive_ttl_is_skipped(store, client, record):
    await store.set(record.token_fingerprint, record, timedelta(0))

    client.pipeline.assert_not_called()


async def test_set_failure_raises_store_unavailable(store, client, record):
    client.pipeline.return_value = FakePipeline(fail=True)

    with pytest.raises(StoreUnavailable):
        await store.set(record.token_fingerprint, record, timedelta(minutes=10))


async def test_get_returns_record(store, client, record):
    client.get = AsyncMock(return_value=record.model_dump_json())

    assert await store.get(record.token_fingerprint) == record
    client.get.assert_awaited_once_with(f"blacklist:{record.token_fingerprint}")


async def test_get_missing_key_is_none(store, client):
    client.get = AsyncMock(return_value=None)

    assert await store.get("missing") is None


async def test_get_corrupt_value_still_counts_as_revoked(store, client):
    client.get = AsyncMock(return_value="not-json")
    client.pttl = AsyncMock(return_value=30_000)

    rebuilt = await store.get("fp")

    assert rebuilt is not None
    assert rebuilt.token_fingerprint == "fp"
    assert rebuilt.user_id == "unknown"


async def test_get_connection_error_raises_store_unavailable(store, client):
    client.get = AsyncMock(side_effect=RedisConnectionError("connection refused"))

    with pytest.raises(StoreUnavailable):
        await store.get("fp")


async def test_get_timeout_raises_store_unavailable(store, client):
    async def _hang(key):
        await asyncio.sleep(1)

    client.get = _hang

    with pytest.raises(StoreUnavailable):
        await store.get("fp")


async def test_user_fingerprints_reads_only_unexpired_members(store, client):
    client.zrangebyscore = AsyncMock(return_value=["fp-1", "fp-2"])
    before = datetime.now(timezone.utc).timestamp()

    assert await store.user_fingerprints("user-1") == {"fp-1", "fp-2"}

    key, low, high = client.zrangebyscore.await_args.args
    assert key == "blacklist:user:user-1"
    assert high == "+inf"
    # Exclusive lower bound at the current time
    assert low.startswith("(")
    assert float(low[1:]) >= before


async def test_user_fingerprints_failure_raises_store_unavailable(store, client):
    client.zrangebyscore = AsyncMock(side_effect=RedisConnectionError("down"))

    with pytest.raises(StoreUnavailable):
        await store.user_fingerprints("user-1")


async def test_ping(store, client):
    client.ping = AsyncMock(return_value=True)
    assert await store.ping() is True

    client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
    with pytest.raises(StoreUnavailable):
        await store.ping()


@pytest.mark.parametrize("cls", [DurableRevocationStore, RedisRevocationStore])
def test_store_annotations_resolve_to_builtin_set(cls):
    # A method named "set" must not shadow the builtin in the class's annotations
    hints = typing.get_type_hints(cls.user_fingerprints)
    assert hints["return"] == set[str]
    assert "record" in typing.get_type_hints(cls.set)
