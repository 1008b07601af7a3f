"""Data models for event aggregation."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Category(str, Enum):
    """Closed set of event categories shown to users."""
    NIGHTLIFE = 'nightlife'
    FOOD_DRINK = 'food_drink'
    CONCERT = 'concert'
    FESTIVAL = 'festival'
    SPORTS = 'sports'
    ART = 'art'
    FAMILY = 'family'
    OTHER = 'other'


class SourceType(str, Enum):
    """Provenance of an event, ordered by how much we trust the source."""
    TICKETMASTER = 'api_ticketmaster'
    EVENTBRITE = 'api_eventbrite'
    SEATGEEK = 'api_seatgeek'
    AI_DISCOVERED = 'ai_discovered'

    @property
    def priority(self) -> int:
        return _SOURCE_PRIORITY[self]

    @property
    def is_ai(self) -> bool:
        return self is SourceType.AI_DISCOVERED


_SOURCE_PRIORITY = {
    SourceType.TICKETMASTER: 4,
    SourceType.EVENTBRITE: 3,
    SourceType.SEATGEEK: 2,
    SourceType.AI_DISCOVERED: 1,
}


class EventStatus(str, Enum):
    """Lifecycle state of a persisted event."""
    ACTIVE = 'active'
    PAST = 'past'
    FLAGGED = 'flagged'
    REMOVED = 'removed'


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Venue:
    """Place where an event happens."""
    id: str
    name: str
    address: str
    city: str
    lat: float = 0.0
    lng: float = 0.0
    verified: bool = False
    owner_id: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        """False for the (0, 0) sentinel used when coordinates are unknown."""
        return bool(self.lat) and bool(self.lng)


@dataclass
class Event:
    """Canonical event produced by every source connector."""
    id: str
    title: str
    description: str
    venue: Optional[Venue]
    event_date: str
    start_time: str
    end_time: Optional[str]
    category: Category
    price_info: str
    source_type: SourceType
    source_url: Optional[str]
    confidence: float
    image_url: Optional[str] = None
    status: EventStatus = EventStatus.ACTIVE
    created_at: str = field(default_factory=_utc_now)

    @property
    def idempotency_key(self) -> tuple[str, str]:
        return (self.title, self.event_date)

    @property
    def trusted_confidence(self) -> Optional[float]:
        """Confidence only carries meaning for AI-discovered events."""
        if self.source_type.is_ai:
            return self.confidence
        return None

    def to_dict(self) -> dict:
        data = asdict(self)
        data['category'] = self.category.value
        data['source_type'] = self.source_type.value
        data['status'] = self.status.value
        return data


@dataclass
class ScanResult:
    """Summary of one scan run."""
    structured_found: int = 0
    structured_persisted: int = 0
    ai_found: int = 0
    ai_persisted: int = 0
    archived: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            'structured_found': self.structured_found,
            'structured_persisted': self.structured_persisted,
            'ai_found': self.ai_found,
            'ai_persisted': self.ai_persisted,
            'archived': self.archived,
            'errors': list(self.errors),
        }
