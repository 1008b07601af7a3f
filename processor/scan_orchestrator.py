"""Recurring scan that keeps the event store in sync with the providers."""
import logging
import time
import uuid
from datetime import date, timedelta
from typing import Callable, Iterable, Optional, Set, Tuple

from botocore.exceptions import ClientError

from processor.models import Event, ScanResult
from scraper.ai_discovery import AIDiscoveryClient
from scraper.errors import EventSourceError, RateLimitExhaustedError
from scraper.ticketmaster import TicketmasterClient
from storage.city_cache import KnownCityCache
from storage.dynamodb_manager import DynamoDBManager, PersistenceError

logger = logging.getLogger(__name__)

STEP_STRUCTURED = 'structured'
STEP_AI = 'ai'
STEP_ARCHIVE = 'archive'
ALL_STEPS = (STEP_STRUCTURED, STEP_AI, STEP_ARCHIVE)

LEASE_ID = 'daily-scan'


class ScanOrchestrator:
    """
    Runs the three scan steps: structured refresh, AI city scan, archival.

    Each step records its own failures in the ScanResult; none of them can
    prevent the others from running.
    """

    def __init__(
        self,
        store: DynamoDBManager,
        ticketmaster: Optional[TicketmasterClient] = None,
        ai_client: Optional[AIDiscoveryClient] = None,
        max_pages: int = 5,
        city_delay: float = 1.0,
        archive_grace_days: int = 0,
        lease_seconds: int = 900,
        sleep: Optional[Callable[[float], None]] = None,
        today: Optional[Callable[[], date]] = None
    ):
        self.store = store
        self.ticketmaster = ticketmaster
        self.ai_client = ai_client
        self.max_pages = max_pages
        self.city_delay = city_delay
        self.archive_grace_days = archive_grace_days
        self.lease_seconds = lease_seconds
        self.sleep = sleep or time.sleep
        self.today = today or date.today

    def run(self, steps: Iterable[str] = ALL_STEPS) -> ScanResult:
        """
        Execute the requested steps once.

        Args:
            steps: Subset of ALL_STEPS to run, in canonical order

        Returns:
            ScanResult with counts and the non-fatal error list
        """
        result = ScanResult()
        requested = set(steps)
        owner = uuid.uuid4().hex

        try:
            acquired = self.store.acquire_lease(LEASE_ID, owner, self.lease_seconds)
        except Exception as e:
            result.errors.append(f"Lease check failed: {e}")
            logger.error(result.errors[-1], exc_info=True)
            return result

        if not acquired:
            result.errors.append('Another scan run holds the lease; skipping')
            logger.warning(result.errors[-1])
            return result

        try:
            city_cache = KnownCityCache()
            if STEP_STRUCTURED in requested:
                self._run_step('Structured refresh', self.refresh_structured, result, city_cache)
            if STEP_AI in requested:
                self._run_step('AI city scan', self.scan_cities_with_ai, result)
            if STEP_ARCHIVE in requested:
                self._run_step('Archive', self.archive_past_events, result)
        finally:
            try:
                self.store.release_lease(LEASE_ID, owner)
            except Exception as e:
                logger.warning(f"Failed to release scan lease: {e}")

        logger.info(
            'Scan complete',
            extra={'summary': result.to_dict()}
        )
        return result

    def _run_step(self, name: str, step: Callable, result: ScanResult, *args) -> None:
        logger.info(f"--- {name} ---")
        try:
            step(result, *args)
        except Exception as e:
            message = f"{name} failed: {e}"
            logger.error(message, extra={'error_type': type(e).__name__}, exc_info=True)
            result.errors.append(message)

    def refresh_structured(
        self,
        result: ScanResult,
        city_cache: Optional[KnownCityCache] = None
    ) -> None:
        """Page through the nationwide Ticketmaster feed and insert new events."""
        if self.ticketmaster is None or not self.ticketmaster.enabled:
            logger.info('Skipping structured refresh: no Ticketmaster API key')
            return

        city_cache = city_cache if city_cache is not None else KnownCityCache()
        try:
            city_cache.load(self.store.get_city_names())
        except ClientError as e:
            logger.debug(f"Could not preload known cities: {e}")
        existing = self.store.get_existing_keys(since=self.today().isoformat())
        seen: Set[Tuple[str, str]] = set()

        pages = self.ticketmaster.fetch_pages(city=None, max_pages=self.max_pages)
        page_number = 0
        while True:
            try:
                page_events = next(pages)
            except StopIteration:
                break
            except EventSourceError as e:
                result.errors.append(f"Ticketmaster page {page_number}: {e}")
                logger.warning(result.errors[-1])
                break
            page_number += 1
            result.structured_found += len(page_events)

            for event in page_events:
                if self._persist(event, existing, seen, result):
                    result.structured_persisted += 1
                    self._remember_city(event, city_cache)

        logger.info(
            f"Structured found: {result.structured_found}, "
            f"persisted: {result.structured_persisted}"
        )

    def scan_cities_with_ai(self, result: ScanResult) -> None:
        """Run AI discovery for every scan-enabled city."""
        if self.ai_client is None or not self.ai_client.enabled:
            logger.info('Skipping AI scan: no Gemini API key')
            return

        cities = self.store.get_scan_enabled_cities()
        if not cities:
            logger.info('No scan-enabled cities found')
            return

        today = self.today()
        existing = self.store.get_existing_keys(since=today.isoformat())
        seen: Set[Tuple[str, str]] = set()

        for index, city in enumerate(cities):
            if index > 0 and self.city_delay:
                self.sleep(self.city_delay)

            logger.info(f"Scanning: {city}")
            try:
                events = self.ai_client.discover(city, today=today)
            except RateLimitExhaustedError as e:
                # The limit is provider-wide, remaining cities would fail too
                result.errors.append(f"AI scan {city}: {e}")
                logger.warning(f"Rate limit hit, stopping AI scan: {e}")
                break
            except EventSourceError as e:
                result.errors.append(f"AI scan {city}: {e}")
                logger.warning(result.errors[-1])
                continue

            result.ai_found += len(events)
            for event in events:
                if self._persist(event, existing, seen, result):
                    result.ai_persisted += 1

        logger.info(f"AI found: {result.ai_found}, persisted: {result.ai_persisted}")

    def archive_past_events(self, result: ScanResult) -> None:
        cutoff = self.today() - timedelta(days=self.archive_grace_days)
        result.archived = self.store.archive_past_events(cutoff.isoformat())
        logger.info(f"Archived: {result.archived} events")

    def _persist(
        self,
        event: Event,
        existing: Set[Tuple[str, str]],
        seen: Set[Tuple[str, str]],
        result: ScanResult
    ) -> bool:
        """
        Insert event unless its idempotency key is already known.

        Returns:
            True when a new row was written
        """
        key = event.idempotency_key
        if key in existing or key in seen:
            return False
        seen.add(key)

        try:
            venue_id = self.store.resolve_venue(event.venue)
            return self.store.insert_event(event, venue_id)
        except (PersistenceError, ClientError) as e:
            result.errors.append(f"Failed to persist '{event.title}': {e}")
            logger.warning(result.errors[-1])
            return False

    def _remember_city(self, event: Event, city_cache: KnownCityCache) -> None:
        city = event.venue.city if event.venue else None
        if not city or city in city_cache:
            return
        try:
            self.store.upsert_city(city)
            city_cache.add(city)
        except Exception as e:
            # Known-city bookkeeping is best effort
            logger.debug(f"City upsert failed for '{city}': {e}")
