"""Exceptions raised by dcrps."""


class DcrpsError(Exception):
    """Base class for all dcrps errors."""


class UsageError(DcrpsError):
    """Missing or unrecognized command or argument."""


class ResolutionError(DcrpsError):
    """A target could not be mapped to an agent address."""


class DispatchError(DcrpsError):
    """An agent command failed."""


class ProcessNotFoundError(DcrpsError):
    """The requested process does not exist."""
