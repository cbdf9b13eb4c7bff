"""Assistant error hierarchy."""

from typing import Optional


class AssistantError(Exception):
    """Base exception for assistant errors."""
    pass


class AssistantRejectedError(AssistantError):
    """The endpoint refused the query before streaming anything."""

    status_code: int = 0

    def __init__(self, message: str, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(message)


class RateLimitedError(AssistantRejectedError):
    """429 - too many requests, the user may retry shortly."""

    status_code = 429


class QuotaExhaustedError(AssistantRejectedError):
    """402 - the AI credits of the backend are used up."""

    status_code = 402


class AssistantHTTPError(AssistantError):
    """Any other non-success status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class AssistantTransportError(AssistantError):
    """Connection, read, timeout or body decoding failure while talking to the endpoint."""
    pass
