# coldmail/errors.py


class ColdMailError(Exception):
    """Base class for errors raised by the engine."""


class TabularInputError(ColdMailError):
    """The contacts input could not be opened as a table."""


class AuthenticationError(ColdMailError):
    """No valid sending identity is available for this run."""


class DispatchError(ColdMailError):
    """A draft could not be created by the mail provider."""


class SettingsError(ColdMailError):
    """Settings are missing a value a command needs."""
