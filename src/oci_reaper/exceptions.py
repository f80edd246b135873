"""Exceptions raised by the registry reaper."""


class ReaperError(Exception):
    """Base class for all reaper errors."""


class ConfigError(ReaperError):
    """Configuration is missing or invalid.

    Raised before any contact with the registry.
    """


class TransportError(ReaperError):
    """A request to the registry failed.

    Parameters
    ----------
    method
        HTTP method of the failed request.
    url
        URL of the failed request.
    message
        Human-readable description of the failure.
    """

    def __init__(self, method: str, url: str, message: str) -> None:
        super().__init__(f"{method} {url}: {message}")
        self.method = method
        self.url = url


class UnauthorizedError(TransportError):
    """Registry rejected our credentials (401 or 403)."""


class NotFoundError(TransportError):
    """Registry returned 404."""


class HTTPStatusError(TransportError):
    """Registry returned some other non-2xx status."""

    def __init__(self, method: str, url: str, status_code: int) -> None:
        super().__init__(method, url, f"HTTP {status_code}")
        self.status_code = status_code


class NetworkError(TransportError):
    """Request never got a response (connection failure, timeout)."""


class CatalogError(ReaperError):
    """Repository catalog could not be listed.  Fatal to the run."""


class DateResolutionError(ReaperError):
    """No creation date could be determined for an artifact."""


class TimestampError(DateResolutionError):
    """A timestamp could not be parsed as an instant."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Cannot parse timestamp {value!r}")
        self.value = value


class DigestResolutionError(ReaperError):
    """Current digest of an expired tag could not be determined."""


class DeletionError(ReaperError):
    """Registry refused or failed a manifest deletion."""
