"""Exception types shared across the monitor."""


class MonitorError(Exception):
    """Base class for errors raised by the monitor."""


class RecordValidationError(MonitorError):
    """A record failed shape validation and cannot be persisted."""

    def __init__(self, collection: str, message: str):
        super().__init__(f"Invalid {collection} record: {message}")
        self.collection = collection


class RemoteAPIError(MonitorError):
    """The build host answered with a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class CredentialError(MonitorError):
    """An access token handed back by the authorization flow was rejected."""


class UnknownMessageError(MonitorError):
    """A request signal did not match any known message id."""
