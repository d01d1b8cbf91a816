class IncrementalFaithError(Exception):
    """Base exception for the Incremental Faith project."""


class ConfigError(IncrementalFaithError):
    """Raised when a game configuration is invalid or cannot be parsed."""


class FeatureDisabledError(IncrementalFaithError):
    """Raised when an action is invoked that the configured variant does not support."""


class StorageError(IncrementalFaithError):
    """Raised by key-value stores when a read, write or delete fails."""
