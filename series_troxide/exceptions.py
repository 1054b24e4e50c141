"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class SeriesTroxideError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(SeriesTroxideError):
    """Raised for issues related to configuration loading or validation."""


class ApiError(SeriesTroxideError):
    """Base exception for failures talking to the TVmaze API."""


class NetworkError(ApiError):
    """Raised when a request to the TVmaze API fails at the transport level."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Request to '{url}' failed: {reason}")
        self.url = url
        self.reason = reason


class DeserializationError(ApiError):
    """
    Raised when a TVmaze document cannot be parsed into the expected model.

    Carries the offending line of the document when it can be located.
    """

    def __init__(self, message: str, errored_line: str | None = None):
        if errored_line:
            message = f"{message} (unexpected '{errored_line.strip()}')"
        super().__init__(message)
        self.errored_line = errored_line


class BadResponseError(ApiError):
    """Raised when TVmaze answers with its JSON error body instead of data."""

    def __init__(self, name: str, message: str):
        super().__init__(
            f"TVmaze returned an error: name: '{name}', message: '{message}'"
        )
        self.name = name
        self.message = message


class DatastoreError(SeriesTroxideError):
    """Base exception for tracked-series datastore failures."""


class DatastoreOpenError(DatastoreError):
    """
    Raised when the datastore at the versioned path cannot be opened.

    This is fatal for the caller; no repair or fallback store is attempted.
    """


class SeriesNotFoundError(DatastoreError):
    """Raised when an operation targets a series that is not in the datastore."""

    def __init__(self, series_id: int):
        super().__init__(f"Series with id '{series_id}' is not in the database.")
        self.series_id = series_id


class TransferError(SeriesTroxideError):
    """Base exception for database import, export and creation failures."""


class DatabasePathNotFoundError(TransferError):
    """Raised when the standard database path could not be determined."""

    def __init__(self):
        super().__init__("Standard database path could not be found.")


class DatabaseFileExistsError(TransferError):
    """Raised when creating a database would overwrite an existing one."""

    def __init__(self, path):
        super().__init__(
            f"Database file already exists at '{path}', use --force to override."
        )
        self.path = path


class InvalidDatabaseFileError(TransferError):
    """
    Raised when a candidate database file fails validation.

    The active database is guaranteed to be untouched when this is raised.
    """
