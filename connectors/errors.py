"""Exceptions raised by connectors."""


class ConnectorError(Exception):
    """Base class for connector failures that are not raw transport errors."""


class ValidationError(ConnectorError, ValueError):
    """Input failed validation before any request was issued."""


class CredentialsError(ConnectorError, ValueError):
    """Credentials for a connector are not configured."""


class WritesDisabledError(ConnectorError):
    """A write operation was requested while writes are disabled."""


class ApiError(ConnectorError):
    """The remote API reported an error inside a successful HTTP response."""

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details


class DataShapeError(ConnectorError):
    """A response did not contain a field the operation depends on."""
