from sessionguard.revocation.durable import DurableRevocationStore, RedisRevocationStore
from sessionguard.revocation.exceptions import InvalidTokenError, RevocationError, StoreUnavailable
from sessionguard.revocation.fingerprint import fingerprint_token
from sessionguard.revocation.local_cache import LocalRevocationCache
from sessionguard.revocation.models import RevocationRecord
from sessionguard.revocation.service import RevocationService

__all__ = [
    "DurableRevocationStore",
    "InvalidTokenError",
    "LocalRevocationCache",
    "RedisRevocationStore",
    "RevocationError",
    "RevocationRecord",
    "RevocationService",
    "StoreUnavailable",
    "fingerprint_token",
]
