"""Union of all source connectors into one deduplicated event list."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional, Sequence

from processor.models import Event
from processor.similarity import are_similar
from scraper.base import EventSourceClient

logger = logging.getLogger(__name__)


def _prefer(candidate: Event, existing: Event) -> bool:
    """Whether candidate should replace its near-duplicate existing."""
    if candidate.source_type.priority != existing.source_type.priority:
        return candidate.source_type.priority > existing.source_type.priority
    return bool(candidate.image_url) and not existing.image_url


def deduplicate_events(events: Sequence[Event]) -> List[Event]:
    """
    Collapse near-duplicate events, keeping the most trusted record.

    The fold is sequential: each event is compared against the events kept
    so far, so input order influences which near-duplicates meet. The scan
    is quadratic, which suits per-city volumes.

    Args:
        events: Events in connector order

    Returns:
        Deduplicated events sorted ascending by date
    """
    kept: List[Event] = []

    for event in events:
        match = next(
            (i for i, existing in enumerate(kept) if are_similar(existing, event)),
            None
        )
        if match is None:
            kept.append(event)
        elif _prefer(event, kept[match]):
            logger.debug(
                f"Replacing '{kept[match].title}' ({kept[match].source_type.value}) "
                f"with '{event.title}' ({event.source_type.value})"
            )
            kept[match] = event

    removed = len(events) - len(kept)
    if removed:
        logger.info(f"Removed {removed} duplicate events")

    return sorted(kept, key=lambda e: e.event_date)


class EventAggregator:
    """Fetches a city's events from every provider and deduplicates them."""

    def __init__(
        self,
        connectors: Sequence[EventSourceClient],
        ai_client: Optional[EventSourceClient] = None,
        deadline_seconds: float = 45.0
    ):
        """
        Initialize the aggregator.

        Args:
            connectors: Structured connectors, in priority-neutral fetch order
            ai_client: Optional AI connector, queried after the structured ones
            deadline_seconds: Ceiling on waiting for all structured connectors together
        """
        self.connectors = list(connectors)
        self.ai_client = ai_client
        self.deadline_seconds = deadline_seconds

    def aggregate(self, city: str) -> List[Event]:
        """
        Aggregate events for a city.

        Never raises: a failing or slow provider contributes no events.
        """
        logger.info(f"Aggregating events for '{city}' from {len(self.connectors)} providers")
        events = self._fetch_structured(city)

        if self.ai_client is not None and self.ai_client.enabled:
            try:
                events.extend(self.ai_client.fetch(city))
            except Exception as e:
                logger.warning(f"AI discovery failed, continuing with API results: {e}")

        result = deduplicate_events(events)
        logger.info(f"Aggregated {len(result)} events for '{city}' from {len(events)} candidates")
        return result

    def _fetch_structured(self, city: str) -> List[Event]:
        if not self.connectors:
            return []

        executor = ThreadPoolExecutor(max_workers=len(self.connectors))
        try:
            futures = [executor.submit(c.fetch, city) for c in self.connectors]
            events: List[Event] = []
            deadline = time.monotonic() + self.deadline_seconds
            # Results are joined in connector order so the fold is deterministic
            for connector, future in zip(self.connectors, futures):
                try:
                    remaining = max(0.0, deadline - time.monotonic())
                    events.extend(future.result(timeout=remaining))
                except FutureTimeoutError:
                    logger.warning(f"{connector.NAME} exceeded {self.deadline_seconds}s deadline")
                except Exception as e:
                    logger.warning(f"{connector.NAME} failed: {e}")
            return events
        finally:
            # Do not block on a straggler past its deadline
            executor.shutdown(wait=False)
