"""Discovery of small local events through a web-search-grounded LLM."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import requests

from processor.categories import coerce_category
from processor.models import Event, SourceType, Venue
from scraper.base import EventSourceClient
from scraper.errors import (
    ConfigurationMissingError,
    EventSourceError,
    MalformedResponseError,
    ProviderError,
    RateLimitExhaustedError,
    TransientProviderError,
)
from scraper.llm_parsing import ParseStatus, parse_event_array
from scraper.retry import RetriesExhaustedError, RetryPolicy

logger = logging.getLogger(__name__)

SEARCH_QUERIES = [
    '{city} events diese woche restaurant bar',
    '{city} veranstaltungen lokal gastronomie',
    '{city} pub quiz karaoke comedy abend',
    '{city} food event themenabend restaurant',
    '{city} live musik kneipe bar club',
    '{city} flohmarkt markt straßenfest',
    '{city} workshop kurs kreativ abend',
]

DISCOVERY_PROMPT = """Du bist ein Event-Scout für die Stadt {city} in Deutschland.
Suche im Internet nach lokalen Events, die zwischen {today} und {until} stattfinden.

Fokussiere dich auf KLEINE, LOKALE Events, die NICHT auf großen Plattformen (Ticketmaster, Eventbrite) zu finden sind:
- Themenabende in Restaurants (z.B. "Mexican Night", "Weinprobe")
- Bar-Events (Pub Quiz, Karaoke, Open Mic, DJ-Abende)
- Lokale Live-Musik in Kneipen und Bars
- Food-Trucks, Street-Food-Märkte, Flohmärkte, Kunstmärkte
- Comedy-Abende, Poetry Slams, Workshops, Vereinsfeste
- Sport-Events (Laufgruppen, Yoga im Park)

WICHTIG: Nur Events mit konkretem Datum, Uhrzeit und Ort. Keine generischen Angebote.
Erfinde keine Events. Gib für jedes Event die URL der Quelle an, in der du es gefunden hast.

Antwort als JSON-Array. Jedes Event:
{{"title": "...", "description": "max 200 Zeichen", "date": "YYYY-MM-DD",
"time_start": "HH:MM", "time_end": "HH:MM oder null", "venue_name": "...",
"venue_address": "...", "city": "{city}",
"category": "nightlife|food_drink|concert|festival|sports|art|family|other",
"price_info": "z.B. 10€, Kostenlos, Ab 5€", "source_url": "URL der Quelle",
"confidence": 0.0-1.0}}

Nur Events mit confidence >= {min_confidence}.
Antworte NUR mit dem JSON-Array, kein anderer Text. Leeres Array [] wenn nichts gefunden."""

REQUIRED_FIELDS = ('title', 'date', 'time_start', 'venue_name')


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ''


class AIDiscoveryClient(EventSourceClient):
    """
    Connector asking Gemini, with Google Search grounding, for local events.

    discover(city) is the direct entry point and raises distinguishable
    errors; fetch(city) is the background entry point and never raises.
    """

    BASE_URL = 'https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent'
    SOURCE_TYPE = SourceType.AI_DISCOVERED
    NAME = 'AI discovery'

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = 60,
        model: str = 'gemini-2.0-flash',
        horizon_days: int = 14,
        min_confidence: float = 0.5,
        require_source_url: bool = False,
        retry_policy: Optional[RetryPolicy] = None,
        **kwargs
    ):
        """
        Initialize the AI discovery connector.

        Args:
            api_key: Gemini API key
            timeout: Per-request timeout in seconds (default: 60)
            model: Generative model name
            horizon_days: Accept events dated today .. today + horizon_days
            min_confidence: Minimum self-reported confidence per event
            require_source_url: Strict mode, drop events without a cited source
            retry_policy: Backoff policy for rate-limited responses
        """
        super().__init__(api_key, timeout=timeout, **kwargs)
        self.model = model
        self.horizon_days = horizon_days
        self.min_confidence = min_confidence
        self.require_source_url = require_source_url
        self.retry_policy = retry_policy or RetryPolicy()

    def fetch(self, city: str) -> List[Event]:
        """Background discovery: every failure yields an empty list."""
        if not self.enabled:
            return []
        try:
            return self.discover(city)
        except EventSourceError as e:
            logger.warning(
                f"AI discovery failed for '{city}': {e}",
                extra={'source': self.NAME, 'error_type': type(e).__name__}
            )
            return []

    def _fetch(self, city: str) -> List[Event]:
        return self.discover(city)

    def discover(self, city: str, today: Optional[date] = None) -> List[Event]:
        """
        Discover local events for a city.

        Args:
            city: City to scan
            today: Reference date of the horizon (default: date.today())

        Returns:
            Validated events inside the horizon; empty when the answer held
            no usable JSON

        Raises:
            ConfigurationMissingError: No API key configured
            RateLimitExhaustedError: Still rate limited after all retries
            ProviderError: Any other non-2xx answer
            TransientProviderError: Network failure
        """
        if not self.enabled:
            raise ConfigurationMissingError('Gemini API key is not configured', self.NAME)

        today = today or date.today()
        text = self._generate(self._build_request(city, today))
        if not text:
            logger.warning(f"AI discovery returned no text for '{city}'")
            return []

        result = parse_event_array(text)
        if result.status is ParseStatus.FAILED:
            logger.warning(
                f"AI discovery answer for '{city}' held no usable JSON: {result.detail}"
            )
            return []
        if result.status is ParseStatus.REPAIRED:
            logger.info(f"AI discovery answer for '{city}' was truncated and repaired")

        events = []
        for item in result.items:
            event = self._map_event(item, city, today)
            if event is not None:
                events.append(event)

        logger.info(
            f"AI discovery kept {len(events)} of {len(result.items)} events for '{city}'"
        )
        return events

    def _build_request(self, city: str, today: date) -> Dict[str, Any]:
        prompt = DISCOVERY_PROMPT.format(
            city=city,
            today=today.isoformat(),
            until=(today + timedelta(days=self.horizon_days)).isoformat(),
            min_confidence=self.min_confidence,
        )
        queries = '\n'.join(query.format(city=city) for query in SEARCH_QUERIES)

        return {
            'contents': [{
                'parts': [
                    {'text': prompt},
                    {'text': f"Suchbegriffe für die Recherche:\n{queries}"},
                ],
            }],
            'tools': [{'google_search': {}}],
            'generationConfig': {
                'temperature': 0.2,
                'maxOutputTokens': 8192,
            },
        }

    def _generate(self, body: Dict[str, Any]) -> str:
        url = self.BASE_URL.format(model=self.model)

        def call() -> requests.Response:
            return self.session.post(
                url,
                params={'key': self.api_key},
                json=body,
                timeout=self.timeout
            )

        try:
            response = self.retry_policy.execute(call)
        except RetriesExhaustedError as e:
            raise RateLimitExhaustedError(
                'Rate limit reached, please try again in a minute', self.NAME
            ) from e
        except requests.RequestException as e:
            raise TransientProviderError(f"Gemini request failed: {e}", self.NAME) from e

        if not response.ok:
            logger.warning(f"Gemini API error {response.status_code}: {response.text[:200]}")
            raise ProviderError(
                f"Gemini API error ({response.status_code})",
                self.NAME,
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Gemini returned invalid JSON: {e}", self.NAME) from e

        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"Gemini returned {type(payload).__name__} instead of an object", self.NAME
            )

        candidates = payload.get('candidates') or []
        if not isinstance(candidates, list) or not candidates:
            return ''
        content = candidates[0].get('content') if isinstance(candidates[0], dict) else None
        parts = content.get('parts') if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ''
        return ''.join(
            part['text'] for part in parts
            if isinstance(part, dict) and isinstance(part.get('text'), str)
        )

    def _map_event(self, item: Any, city: str, today: date) -> Optional[Event]:
        """
        Validate one discovered item and map it to an Event.

        Returns:
            Event, or None when the item fails validation
        """
        if not isinstance(item, dict):
            return None
        if not all(isinstance(item.get(f), str) and item.get(f).strip() for f in REQUIRED_FIELDS):
            logger.debug(f"Dropping AI event with missing fields: {item.get('title')}")
            return None

        try:
            confidence = float(item.get('confidence'))
        except (TypeError, ValueError):
            return None
        if not 0.0 <= confidence <= 1.0 or confidence < self.min_confidence:
            return None

        source_url = item.get('source_url') or None
        if source_url is not None and not str(source_url).startswith('http'):
            source_url = None
        if self.require_source_url and source_url is None:
            logger.debug(f"Dropping AI event without source: {item['title']}")
            return None

        event_date = self.processor.normalize_date(item['date'])
        start_time = self.processor.normalize_time(item['time_start'])
        if not event_date or not start_time:
            return None
        if not self.processor.in_horizon(event_date, self.horizon_days, today):
            return None

        title = self.processor.clean_title(item['title'])
        venue_name = item['venue_name'].strip()
        event_city = _text(item.get('city')) or city

        venue = Venue(
            id=self.processor.generate_event_id('ai-venue', event_city, venue_name),
            name=venue_name,
            address=_text(item.get('venue_address')) or event_city,
            city=event_city,
        )

        return Event(
            id=self.processor.generate_event_id('ai', city, event_date, title),
            title=title,
            description=self.processor.clean_description(item.get('description')),
            venue=venue,
            event_date=event_date,
            start_time=start_time,
            end_time=self.processor.normalize_time(item.get('time_end')),
            category=coerce_category(item.get('category')),
            price_info=self.processor.normalize_price_text(item.get('price_info')) or 'Not specified',
            source_type=self.SOURCE_TYPE,
            source_url=source_url,
            confidence=confidence,
        )
