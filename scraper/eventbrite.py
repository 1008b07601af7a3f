"""Eventbrite API connector."""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from processor.categories import map_eventbrite_category
from processor.event_processor import PRICE_FREE
from processor.models import Event, SourceType, Venue
from scraper.base import STRUCTURED_CONFIDENCE, EventSourceClient, to_float

logger = logging.getLogger(__name__)


class EventbriteClient(EventSourceClient):
    """Connector for the Eventbrite v3 event search endpoint."""

    BASE_URL = 'https://www.eventbriteapi.com/v3/events/search/'
    SOURCE_TYPE = SourceType.EVENTBRITE
    NAME = 'Eventbrite'
    DEFAULT_START_TIME = '00:00'

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = 30,
        days_ahead: int = 90,
        max_pages: int = 3,
        **kwargs
    ):
        super().__init__(api_key, timeout=timeout, **kwargs)
        self.days_ahead = days_ahead
        self.max_pages = max_pages

    def _fetch(self, city: str) -> List[Event]:
        today = date.today()
        headers = {'Authorization': f"Bearer {self.api_key}"}
        events: List[Event] = []

        for page in range(1, self.max_pages + 1):
            params = {
                'location.address': f"{city}, Germany",
                'expand': 'venue',
                'start_date.keyword': 'this_week',
                'page': page,
            }
            logger.info(f"Fetching Eventbrite page {page} for '{city}'")
            data = self._get_json(self.BASE_URL, params=params, headers=headers)

            for raw in data.get('events') or []:
                event = self._map_event(raw, city)
                if event is not None:
                    events.append(event)

            if not (data.get('pagination') or {}).get('has_more_items'):
                break

        return self.processor.filter_horizon(events, self.days_ahead, today)

    def _map_event(self, eb: Dict[str, Any], city: str) -> Optional[Event]:
        start_local = (eb.get('start') or {}).get('local')
        end_local = (eb.get('end') or {}).get('local')
        event_date = self.processor.normalize_date(start_local)
        title = self.processor.clean_title((eb.get('name') or {}).get('text'))
        if not eb.get('id') or not title or not event_date:
            return None

        description = eb.get('description') or {}
        logo = eb.get('logo') or {}

        return Event(
            id=f"eb-{eb['id']}",
            title=title,
            description=self.processor.clean_description(
                description.get('text') or description.get('html')
            ),
            venue=self._map_venue(eb.get('venue'), city),
            event_date=event_date,
            start_time=self.processor.normalize_time(start_local) or self.DEFAULT_START_TIME,
            end_time=self.processor.normalize_time(end_local),
            category=map_eventbrite_category(eb.get('category_id')),
            price_info=PRICE_FREE if eb.get('is_free') else 'See Eventbrite',
            source_type=self.SOURCE_TYPE,
            source_url=eb.get('url'),
            confidence=STRUCTURED_CONFIDENCE,
            image_url=logo.get('url'),
        )

    def _map_venue(self, eb_venue: Optional[Dict[str, Any]], city: str) -> Optional[Venue]:
        if not eb_venue or not eb_venue.get('name'):
            return None

        address = eb_venue.get('address') or {}
        return Venue(
            id=f"eb-venue-{eb_venue.get('id') or eb_venue['name']}",
            name=eb_venue['name'],
            address=address.get('localized_address_display') or '',
            city=address.get('city') or city,
            lat=to_float(address.get('latitude')),
            lng=to_float(address.get('longitude')),
        )
