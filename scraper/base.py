"""Common behaviour of every event source connector."""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from processor.event_processor import EventProcessor
from processor.models import Event, SourceType
from scraper.errors import EventSourceError, ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

STRUCTURED_CONFIDENCE = 0.95


def to_float(value: Any) -> float:
    """Parse a provider coordinate; unknown values become the 0.0 sentinel."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class EventSourceClient(ABC):
    """
    Base class for provider connectors.

    Subclasses implement _fetch(city). The public fetch(city) never raises:
    a provider outage must not abort a larger aggregation or scan.
    """

    SOURCE_TYPE: SourceType
    NAME = 'provider'

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        processor: Optional[EventProcessor] = None
    ):
        """
        Initialize the connector.

        Args:
            api_key: Provider credential; an empty value disables the connector
            timeout: Per-request timeout in seconds (default: 30)
            session: HTTP session, shared connection pool per connector
            processor: Field normalizer
        """
        self.api_key = api_key or ''
        self.timeout = timeout
        self.session = session or requests.Session()
        self.processor = processor or EventProcessor()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def fetch(self, city: str) -> List[Event]:
        """
        Fetch canonical events for a city.

        Args:
            city: City name as shown to users

        Returns:
            List of Event objects, empty when disabled or on any failure
        """
        if not self.enabled:
            logger.debug(f"{self.NAME} disabled: no credential configured")
            return []

        try:
            events = self._fetch(city)
        except (EventSourceError, requests.RequestException, ValueError, KeyError, TypeError) as e:
            logger.warning(
                f"{self.NAME} fetch failed for '{city}': {e}",
                extra={'source': self.NAME, 'error_type': type(e).__name__}
            )
            return []

        logger.info(f"{self.NAME} returned {len(events)} events for '{city}'")
        return events

    @abstractmethod
    def _fetch(self, city: str) -> List[Event]:
        """Provider-specific fetch; may raise."""

    def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        GET a JSON document.

        Raises:
            TransientProviderError: On network failure or a 5xx status
            ProviderError: On any other non-2xx status
        """
        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransientProviderError(f"{self.NAME} request failed: {e}", self.NAME) from e

        if response.status_code >= 500:
            raise TransientProviderError(
                f"{self.NAME} API error: {response.status_code}", self.NAME
            )
        if not response.ok:
            raise ProviderError(
                f"{self.NAME} API error: {response.status_code}",
                self.NAME,
                status_code=response.status_code
            )
        return response.json()
