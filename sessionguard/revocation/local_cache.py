"""In-process mirror of recent revocations.

Used when Redis is unreachable and to answer hot checks without a network
round trip.  The cache has no TTL of its own: entries stay until ``sweep``
removes those whose ``expires_at`` has passed.  ``get`` already ignores
expired entries, so a late sweep never turns into a stale answer.

A single ``threading.Lock`` guards both maps, so the cache can be shared by
request handlers, the sweep task and worker threads alike.
"""

import threading
from datetime import datetime

from sessionguard.revocation.models import RevocationRecord


class LocalRevocationCache:
    def __init__(self) -> None:
        self._records: dict[str, RevocationRecord] = {}
        # user_id -> fingerprints, kept in step with _records
        self._by_user: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def put(self, record: RevocationRecord) -> None:
        """Store ``record``; an existing entry with a later expiry is kept."""
        with self._lock:
            current = self._records.get(record.token_fingerprint)
            if current is not None and current.expires_at > record.expires_at:
                return
            if current is not None and current.user_id != record.user_id:
                self._unindex(current)
            self._records[record.token_fingerprint] = record
            self._by_user.setdefault(record.user_id, set()).add(record.token_fingerprint)

    def get(self, fingerprint: str, now: datetime) -> RevocationRecord | None:
        with self._lock:
            record = self._records.get(fingerprint)
        if record is None or record.is_expired(now):
            return None
        return record

    def records_for_user(self, user_id: str, now: datetime) -> list[RevocationRecord]:
        """Unexpired records associated with ``user_id``."""
        with self._lock:
            fingerprints = list(self._by_user.get(user_id, ()))
            records = [self._records[fp] for fp in fingerprints]
        return [r for r in records if not r.is_expired(now)]

    def sweep(self, now: datetime) -> int:
        """Remove every entry with ``expires_at <= now``; return how many went."""
        with self._lock:
            expired = [r for r in self._records.values() if r.is_expired(now)]
            for record in expired:
                del self._records[record.token_fingerprint]
                self._unindex(record)
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._by_user.clear()

    def _unindex(self, record: RevocationRecord) -> None:
        # Caller holds the lock
        fingerprints = self._by_user.get(record.user_id)
        if fingerprints is None:
            return
        fingerprints.discard(record.token_fingerprint)
        if not fingerprints:
            del self._by_user[record.user_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, fingerprint: object) -> bool:
        with self._lock:
            return fingerprint in self._records
