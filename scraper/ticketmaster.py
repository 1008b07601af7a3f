"""Ticketmaster Discovery API connector."""
import logging
import time
from datetime import date, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional

from processor.categories import map_ticketmaster_classification
from processor.models import Event, SourceType, Venue
from scraper.base import STRUCTURED_CONFIDENCE, EventSourceClient, to_float
from scraper.errors import EventSourceError

logger = logging.getLogger(__name__)

# Ticketmaster indexes German cities under their English names
CITY_TO_ENGLISH = {
    'München': 'Munich',
    'Nürnberg': 'Nuremberg',
    'Köln': 'Cologne',
    'Braunschweig': 'Brunswick',
    'Hannover': 'Hanover',
}
CITY_TO_GERMAN = {english: german for german, english in CITY_TO_ENGLISH.items()}


class TicketmasterClient(EventSourceClient):
    """Connector for the Ticketmaster Discovery v2 events endpoint."""

    BASE_URL = 'https://app.ticketmaster.com/discovery/v2/events.json'
    SOURCE_TYPE = SourceType.TICKETMASTER
    NAME = 'Ticketmaster'
    DEFAULT_START_TIME = '20:00'

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = 30,
        days_ahead: int = 90,
        page_size: int = 200,
        max_pages: int = 3,
        page_delay: float = 0.0,
        sleep: Optional[Callable[[float], None]] = None,
        **kwargs
    ):
        super().__init__(api_key, timeout=timeout, **kwargs)
        self.days_ahead = days_ahead
        self.page_size = page_size
        self.max_pages = max_pages
        self.page_delay = page_delay
        self.sleep = sleep or time.sleep

    def _fetch(self, city: str) -> List[Event]:
        events = []
        try:
            for page_events in self.fetch_pages(city=city, max_pages=self.max_pages):
                events.extend(page_events)
        except EventSourceError as e:
            if not events:
                raise
            logger.warning(
                f"Ticketmaster paging stopped early for '{city}', keeping {len(events)} events: {e}",
                extra={'source': self.NAME, 'error_type': type(e).__name__}
            )
        return events

    def fetch_pages(
        self,
        city: Optional[str] = None,
        max_pages: Optional[int] = None
    ) -> Iterator[List[Event]]:
        """
        Yield mapped events page by page.

        Args:
            city: City filter; None fetches the nationwide feed
            max_pages: Upper bound on pages requested

        Raises:
            TransientProviderError, ProviderError: When a page request fails
        """
        max_pages = max_pages or self.max_pages
        today = date.today()
        page = 0
        total_pages = 1

        while page < total_pages and page < max_pages:
            if page > 0 and self.page_delay:
                self.sleep(self.page_delay)

            params = {
                'countryCode': 'DE',
                'size': self.page_size,
                'page': page,
                'sort': 'date,asc',
                'startDateTime': f"{today.isoformat()}T00:00:00Z",
                'endDateTime': f"{(today + timedelta(days=self.days_ahead)).isoformat()}T23:59:59Z",
                'apikey': self.api_key,
            }
            if city:
                params['city'] = CITY_TO_ENGLISH.get(city, city)

            logger.info(f"Fetching Ticketmaster page {page + 1} (city={city or 'all'})")
            data = self._get_json(self.BASE_URL, params=params)

            raw_events = (data.get('_embedded') or {}).get('events') or []
            total_pages = int((data.get('page') or {}).get('totalPages') or 0)
            page += 1

            mapped = [
                event for event in (self._map_event(raw, city) for raw in raw_events)
                if event is not None
            ]
            yield self.processor.filter_horizon(mapped, self.days_ahead, today)

            if not raw_events:
                break

    def _map_event(self, tm: Dict[str, Any], city: Optional[str]) -> Optional[Event]:
        """
        Map one Ticketmaster event to the canonical shape.

        Returns:
            Event, or None for cancelled or incomplete records
        """
        dates = tm.get('dates') or {}
        if (dates.get('status') or {}).get('code') == 'cancelled':
            return None

        start = dates.get('start') or {}
        event_date = self.processor.normalize_date(start.get('localDate'))
        title = self.processor.clean_title(tm.get('name'))
        if not tm.get('id') or not title or not event_date:
            return None

        classification = (tm.get('classifications') or [{}])[0] or {}
        segment_name = (classification.get('segment') or {}).get('name')
        genre_name = (classification.get('genre') or {}).get('name')

        price_info = None
        price_ranges = tm.get('priceRanges') or []
        if price_ranges:
            price_range = price_ranges[0]
            price_info = self.processor.format_price(
                price_range.get('min'),
                price_range.get('max'),
                price_range.get('currency')
            )

        return Event(
            id=f"tm-{tm['id']}",
            title=title,
            description=self.processor.clean_description(tm.get('description') or tm.get('info')),
            venue=self._map_venue(tm, city),
            event_date=event_date,
            start_time=self.processor.normalize_time(start.get('localTime')) or self.DEFAULT_START_TIME,
            end_time=self.processor.normalize_time((dates.get('end') or {}).get('localTime')),
            category=map_ticketmaster_classification(segment_name, genre_name),
            price_info=price_info or 'See Ticketmaster',
            source_type=self.SOURCE_TYPE,
            source_url=tm.get('url'),
            confidence=STRUCTURED_CONFIDENCE,
            image_url=self.processor.select_best_image(tm.get('images')),
        )

    def _map_venue(self, tm: Dict[str, Any], city: Optional[str]) -> Optional[Venue]:
        venues = (tm.get('_embedded') or {}).get('venues') or []
        if not venues or not venues[0].get('name'):
            return None

        tm_venue = venues[0]
        tm_city = (tm_venue.get('city') or {}).get('name') or ''
        german_city = CITY_TO_GERMAN.get(tm_city, tm_city)
        line1 = (tm_venue.get('address') or {}).get('line1')
        location = tm_venue.get('location') or {}

        return Venue(
            id=f"tm-venue-{tm_venue.get('id') or tm_venue['name']}",
            name=tm_venue['name'],
            address=', '.join(part for part in (line1, german_city) if part),
            city=german_city or city or 'Deutschland',
            lat=to_float(location.get('latitude')),
            lng=to_float(location.get('longitude')),
        )
