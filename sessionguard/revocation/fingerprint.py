import hashlib

from sessionguard.revocation.exceptions import InvalidTokenError

_SHORT_LENGTH = 16


def fingerprint_token(token: str) -> str:
    """Return the SHA-256 hex digest used as the revocation key for ``token``.

    The raw token is never stored; the same token always maps to the same
    fingerprint.
    """
    if not token:
        raise InvalidTokenError("token cannot be empty")
    return hashlib.sha256(token.encode()).hexdigest()


def short_fingerprint(fingerprint: str) -> str:
    """Truncated fingerprint for log lines and audit details."""
    return fingerprint[:_SHORT_LENGTH]
