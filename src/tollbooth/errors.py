from typing import Any, Union


class TollboothError(Exception):
    """Base class for every error raised by tollbooth itself."""


class ConfigurationError(TollboothError):
    """The configuration cannot resolve a request (no environments, no current one).

    Raised before any attempt is made and never retried.
    """


class TooManyRequestsError(TollboothError):
    """Admission was refused: the endpoint or the global ceiling is saturated."""

    def __init__(self, endpoint: Any = None, message: Union[str, None] = None):
        self.endpoint = endpoint
        super().__init__(message or f"too many requests in flight for endpoint={endpoint}")


class RequestTimeoutError(TollboothError):
    """The transport timed out or the attempt deadline expired. Never retried."""

    def __init__(self, message: str = "request timed out", endpoint: Any = None):
        self.endpoint = endpoint
        super().__init__(message)


class TransientTransportError(TollboothError):
    """Any other transport failure (connection errors, non-2xx statuses).

    Eligible for retry. The library exception is kept as __cause__.
    """

    def __init__(self, message: str, status_code: Union[int, None] = None):
        self.status_code = status_code
        super().__init__(message)
