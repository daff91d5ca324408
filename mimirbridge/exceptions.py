"""Custom exceptions for the Mimir bridge."""

from typing import Any


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(BridgeError):
    """Configuration-related errors."""

    pass


class DecodeError(BridgeError):
    """Malformed text-exposition input."""

    def __init__(self, details: str, fragment: str | None = None) -> None:
        message = f"Failed to decode exposition: {details}"
        if fragment:
            message = f"{message} (at {fragment!r})"
        super().__init__(message, details=details, fragment=fragment)


class ExpansionError(BridgeError):
    """Series expansion failed.

    Expansion skips partially populated metrics instead of failing, so nothing
    raises this today.
    """

    pass


class EncodeError(BridgeError):
    """Remote-write serialization failed."""

    def __init__(self, details: str) -> None:
        super().__init__(f"Failed to encode write request: {details}", details=details)


class TransportError(BridgeError):
    """HTTP exchange failed."""

    pass


class ScrapeError(TransportError):
    """Scrape request failed or returned a non-2xx status."""

    def __init__(self, url: str, details: str, status_code: int | None = None) -> None:
        super().__init__(
            f"Scrape of {url} failed: {details}",
            url=url,
            status_code=status_code,
        )
        self.url = url
        self.status_code = status_code


class PushError(TransportError):
    """Push request failed or returned a non-2xx status."""

    def __init__(
        self,
        url: str,
        details: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        message = f"Push to {url} failed: {details}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message, url=url, status_code=status_code, body=body)
        self.url = url
        self.status_code = status_code
        self.body = body
