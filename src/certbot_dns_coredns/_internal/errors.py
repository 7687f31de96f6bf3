"""CoreDNS solver errors."""
from certbot import errors


class SolverError(errors.PluginError):
    """Generic CoreDNS solver error."""


class ConfigDecodeError(SolverError):
    """The solver configuration payload is malformed."""


class ConfigValidationError(SolverError):
    """A required solver configuration field is missing.

    :ivar str field: JSON name of the missing field.

    """
    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)


class CredentialLookupError(SolverError):
    """A referenced credential could not be found."""


class SecretNotFoundError(CredentialLookupError):
    """The referenced secret does not exist."""

    def __init__(self, name: str, namespace: str) -> None:
        self.name = name
        self.namespace = namespace
        super().__init__("secret '{0}/{1}' not found".format(namespace, name))


class SecretKeyNotFoundError(CredentialLookupError):
    """The referenced secret exists but does not hold the requested key."""

    def __init__(self, key: str, name: str, namespace: str) -> None:
        self.key = key
        self.name = name
        self.namespace = namespace
        super().__init__("key not found {0!r} in secret '{1}/{2}'".format(key, namespace, name))


class StoreConnectionError(SolverError):
    """A session with a backing store could not be established."""


class SecretStoreConnectionError(StoreConnectionError):
    """The secret store could not be reached or refused the request."""


class StoreOperationError(SolverError):
    """A put or delete against the record store failed."""


class StoreTimeoutError(StoreOperationError):
    """The record store did not answer within the time budget."""
