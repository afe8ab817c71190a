"""Exceptions raised by the assessment core."""


class CdaError(Exception):
    """Base class for assessment errors."""


class PersistenceError(CdaError):
    """A remote history write or delete did not complete.

    The entry (or the clear) must not be assumed to have happened.
    """


class ConfigurationError(CdaError):
    """Packaged question content is missing or malformed."""
