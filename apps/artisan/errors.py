class ArtisanError(Exception):
    """Base class for errors raised by the backend."""


class ConfigurationError(ArtisanError):
    """Missing or invalid configuration (fatal at startup)."""


class StoreError(ArtisanError):
    """Object store call failed."""


class StoreUnavailable(StoreError):
    """The object store could not be reached."""


class ObjectNotFound(StoreError):
    def __init__(self, key: str):
        super().__init__(f"object not found: {key}")
        self.key = key


class ListFailure(ArtisanError):
    """Listing the namespace failed, so the whole sweep was abandoned."""

    def __init__(self, prefix: str, reason: str):
        super().__init__(f"failed to list objects under {prefix!r}: {reason}")
        self.prefix = prefix
        self.reason = reason


class ProviderError(ArtisanError):
    """The generation provider returned an empty or malformed response."""
