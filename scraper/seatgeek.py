"""SeatGeek API connector."""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from processor.categories import map_seatgeek_type
from processor.models import Event, SourceType, Venue
from scraper.base import STRUCTURED_CONFIDENCE, EventSourceClient, to_float

logger = logging.getLogger(__name__)


class SeatGeekClient(EventSourceClient):
    """Connector for the SeatGeek v2 events endpoint."""

    BASE_URL = 'https://api.seatgeek.com/2/events'
    SOURCE_TYPE = SourceType.SEATGEEK
    NAME = 'SeatGeek'
    DEFAULT_START_TIME = '20:00'

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = 30,
        days_ahead: int = 90,
        per_page: int = 20,
        max_pages: int = 3,
        **kwargs
    ):
        super().__init__(api_key, timeout=timeout, **kwargs)
        self.days_ahead = days_ahead
        self.per_page = per_page
        self.max_pages = max_pages

    def _fetch(self, city: str) -> List[Event]:
        today = date.today()
        events: List[Event] = []

        for page in range(1, self.max_pages + 1):
            params = {
                'venue.city': city,
                'venue.country': 'DE',
                'per_page': self.per_page,
                'page': page,
                'sort': 'datetime_local.asc',
                'datetime_local.gte': today.isoformat(),
                'datetime_local.lte': (today + timedelta(days=self.days_ahead)).isoformat(),
                'client_id': self.api_key,
            }
            logger.info(f"Fetching SeatGeek page {page} for '{city}'")
            data = self._get_json(self.BASE_URL, params=params)

            raw_events = data.get('events') or []
            for raw in raw_events:
                event = self._map_event(raw, city)
                if event is not None:
                    events.append(event)

            total = int((data.get('meta') or {}).get('total') or 0)
            if not raw_events or page * self.per_page >= total:
                break

        return self.processor.filter_horizon(events, self.days_ahead, today)

    def _map_event(self, sg: Dict[str, Any], city: str) -> Optional[Event]:
        local = sg.get('datetime_local')
        event_date = self.processor.normalize_date(local)
        title = self.processor.clean_title(sg.get('title'))
        if not sg.get('id') or not title or not event_date:
            return None

        stats = sg.get('stats') or {}
        price_info = self.processor.format_price(
            stats.get('lowest_price'),
            stats.get('highest_price')
        )

        image_url = next(
            (p['image'] for p in sg.get('performers') or [] if p.get('image')),
            None
        )

        taxonomy = sg.get('taxonomies') or sg.get('taxonomy') or []
        type_name = (taxonomy[0] or {}).get('name') if taxonomy else None

        return Event(
            id=f"sg-{sg['id']}",
            title=title,
            description=self.processor.clean_description(sg.get('description')),
            venue=self._map_venue(sg.get('venue'), city),
            event_date=event_date,
            start_time=self.processor.normalize_time(local) or self.DEFAULT_START_TIME,
            end_time=None,
            category=map_seatgeek_type(type_name or sg.get('type')),
            price_info=price_info or 'See SeatGeek',
            source_type=self.SOURCE_TYPE,
            source_url=sg.get('url'),
            confidence=STRUCTURED_CONFIDENCE,
            image_url=image_url,
        )

    def _map_venue(self, sg_venue: Optional[Dict[str, Any]], city: str) -> Optional[Venue]:
        if not sg_venue or not sg_venue.get('name'):
            return None

        location = sg_venue.get('location') or {}
        return Venue(
            id=f"sg-venue-{sg_venue.get('id') or sg_venue['name']}",
            name=sg_venue['name'],
            address=', '.join(
                part for part in (sg_venue.get('address'), sg_venue.get('city')) if part
            ),
            city=sg_venue.get('city') or city,
            lat=to_float(location.get('lat')),
            lng=to_float(location.get('lon')),
        )
