"""Error taxonomy surfaced by the printer client."""

from __future__ import annotations

from typing import Optional


class PrinterClientError(RuntimeError):
    """Base class for every error raised by a dispatcher operation."""


class InvalidEndpoint(PrinterClientError):
    """Raised when the configured base URL cannot be turned into a request URL."""


class RequestFailed(PrinterClientError):
    """Raised for non-success HTTP statuses and transport failures."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail


class DecodingFailed(PrinterClientError):
    """Raised when a response body does not have the expected shape."""


class NotConnected(PrinterClientError):
    """Available to callers that want to short-circuit while the printer is unreachable.

    The client itself never raises it; commands are attempted regardless of the
    last known connectivity.
    """


class InvalidCommand(PrinterClientError, ValueError):
    """Raised before any request is made when command parameters are out of range."""
