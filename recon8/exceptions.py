"""
This module implements custom exceptions
"""

## Base Error ##################################################################


class Recon8Error(Exception):
    """Base class for all recon8 exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error signals a state that
        is not expected to resolve by itself
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class Recon8FatalError(Recon8Error):
    """A Recon8FatalError is one that indicates an unexpected, and likely
    unrecoverable, failure
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(Recon8FatalError):
    """Exception caused during usage of user-provided configuration"""


## Expected Errors #############################################################


class Recon8ExpectedError(Recon8Error):
    """A Recon8ExpectedError is one that indicates an expected failure condition
    that should cause a sync to terminate, but is expected to resolve in a
    subsequent attempt.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class StoreError(Recon8ExpectedError):
    """Exception caused when an operation against the external store fails"""


class NotFoundError(StoreError):
    """Exception indicating that the requested object does not exist"""


class ConflictError(StoreError):
    """Exception indicating that a write was rejected because it was based on
    a stale resourceVersion
    """


class WatchExpiredError(StoreError):
    """Exception indicating that a watch can not resume from the requested
    resourceVersion and the caller must list again
    """


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when validating library config or command line input.
    """
    if not condition:
        raise ConfigError(message)
