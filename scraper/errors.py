"""Exceptions raised by source connectors."""
from typing import Optional


class EventSourceError(Exception):
    """Base class for failures talking to an event provider."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class TransientProviderError(EventSourceError):
    """Network failure or 5xx from a provider; safe to try again later."""


class ProviderError(EventSourceError):
    """Provider answered with a non-2xx status that retrying did not fix."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message, source)
        self.status_code = status_code


class RateLimitExhaustedError(EventSourceError):
    """Provider kept answering 429 after all retries."""


class MalformedResponseError(EventSourceError):
    """Provider payload could not be interpreted."""


class ConfigurationMissingError(EventSourceError):
    """Connector was invoked directly without its credential."""
