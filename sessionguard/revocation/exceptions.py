class RevocationError(Exception):
    """Base class for revocation subsystem errors."""


class StoreUnavailable(RevocationError):
    """The durable revocation store could not be reached or timed out."""


class InvalidTokenError(RevocationError, ValueError):
    """An empty or otherwise unusable credential was passed in."""
