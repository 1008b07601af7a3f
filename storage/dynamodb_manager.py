"""DynamoDB manager for event, venue and city storage operations."""
import logging
import time
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from processor.models import Event, EventStatus, Venue
from processor.similarity import same_venue

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A single store write failed."""


def _is_conditional_failure(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException'


class DynamoDBManager:
    """Manager for DynamoDB operations."""

    TRANSACTION_SIZE = 100  # DynamoDB transact_write_items limit

    def __init__(
        self,
        events_table: str,
        venues_table: str,
        cities_table: str,
        lease_table: Optional[str] = None,
        dynamodb=None
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            events_table: Table keyed by event_id, with a status-date-index GSI
            venues_table: Table keyed by venue_id, with a city-index GSI
            cities_table: Table keyed by name
            lease_table: Table keyed by lease_id; None disables run leases
            dynamodb: Optional boto3 DynamoDB resource
        """
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.events = self.dynamodb.Table(events_table)
        self.venues = self.dynamodb.Table(venues_table)
        self.cities = self.dynamodb.Table(cities_table)
        self.leases = self.dynamodb.Table(lease_table) if lease_table else None
        self._venues_by_city: Dict[str, List[Venue]] = {}
        logger.info(
            f"Initialized DynamoDBManager for tables: "
            f"{events_table}, {venues_table}, {cities_table}"
        )

    # Events

    def get_existing_keys(self, since: str) -> Set[Tuple[str, str]]:
        """
        Return (title, event_date) keys of all events dated since onwards.

        One paginated scan per run replaces a lookup per candidate event.
        """
        logger.info(f"Loading existing event keys since {since}")
        keys = set()
        kwargs = {'FilterExpression': Attr('event_date').gte(since)}

        while True:
            response = self.events.scan(**kwargs)
            for item in response.get('Items', []):
                if item.get('title') and item.get('event_date'):
                    keys.add((item['title'], item['event_date']))
            if 'LastEvaluatedKey' not in response:
                break
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

        logger.info(f"Found {len(keys)} existing event keys")
        return keys

    def insert_event(self, event: Event, venue_id: Optional[str]) -> bool:
        """
        Insert an event unless its id already exists.

        Returns:
            True when written, False when the id was already stored

        Raises:
            PersistenceError: If the write fails for any other reason
        """
        item = self._event_to_item(event, venue_id)
        try:
            self.events.put_item(
                Item=item,
                ConditionExpression=Attr('event_id').not_exists()
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                logger.debug(f"Event {event.id} already stored")
                return False
            raise PersistenceError(f"Failed to insert event '{event.title}': {e}") from e
        return True

    def get_event(self, event_id: str) -> Optional[dict]:
        response = self.events.get_item(Key={'event_id': event_id})
        return response.get('Item')

    def archive_past_events(self, cutoff: str) -> int:
        """
        Mark every active event dated before cutoff as past.

        Updates are applied in atomic transactions of up to 100 items; when
        a transaction is rejected the chunk falls back to individual
        conditional updates. Rows are never deleted.

        Args:
            cutoff: ISO date; events dated strictly before it are archived

        Returns:
            Count of events moved to past
        """
        event_ids = self._active_event_ids_before(cutoff)
        logger.info(f"Archiving {len(event_ids)} active events dated before {cutoff}")

        archived = 0
        for i in range(0, len(event_ids), self.TRANSACTION_SIZE):
            chunk = event_ids[i:i + self.TRANSACTION_SIZE]
            try:
                self._archive_transaction(chunk)
                archived += len(chunk)
            except (ClientError, BotoCoreError) as e:
                logger.warning(
                    f"Archive transaction {i // self.TRANSACTION_SIZE + 1} failed: {e}. "
                    f"Falling back to individual updates"
                )
                archived += self._archive_individually(chunk)

        logger.info(f"Archived {archived} events")
        return archived

    def _active_event_ids_before(self, cutoff: str) -> List[str]:
        kwargs = {
            'IndexName': 'status-date-index',
            'KeyConditionExpression': (
                Key('status').eq(EventStatus.ACTIVE.value) & Key('event_date').lt(cutoff)
            ),
        }
        event_ids = []
        while True:
            response = self.events.query(**kwargs)
            event_ids.extend(item['event_id'] for item in response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                break
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        return event_ids

    def _archive_transaction(self, event_ids: List[str]) -> None:
        self.dynamodb.meta.client.transact_write_items(
            TransactItems=[
                {'Update': self._archive_update(event_id)} for event_id in event_ids
            ]
        )

    def _archive_individually(self, event_ids: List[str]) -> int:
        archived = 0
        for event_id in event_ids:
            update = self._archive_update(event_id)
            update.pop('TableName')
            try:
                self.events.update_item(**update)
                archived += 1
            except ClientError as e:
                if not _is_conditional_failure(e):
                    raise PersistenceError(f"Failed to archive event {event_id}: {e}") from e
        return archived

    def _archive_update(self, event_id: str) -> dict:
        return {
            'TableName': self.events.name,
            'Key': {'event_id': event_id},
            'UpdateExpression': 'SET #status = :past',
            'ConditionExpression': '#status = :active',
            'ExpressionAttributeNames': {'#status': 'status'},
            'ExpressionAttributeValues': {
                ':past': EventStatus.PAST.value,
                ':active': EventStatus.ACTIVE.value,
            },
        }

    # Venues

    def resolve_venue(self, venue: Optional[Venue]) -> Optional[str]:
        """
        Return the id of a stored venue matching venue, creating it if needed.

        Matching uses the same loose venue rule as event deduplication
        (name equality, containment, fuzzy name, or coordinates within
        ~500 m) among venues of the same city.
        """
        if venue is None or not venue.name:
            return None

        candidates = self._city_venues(venue.city)
        for existing in candidates:
            if same_venue(existing, venue):
                return existing.id

        self._create_venue(venue)
        candidates.append(venue)
        return venue.id

    def _city_venues(self, city: str) -> List[Venue]:
        if city not in self._venues_by_city:
            kwargs = {
                'IndexName': 'city-index',
                'KeyConditionExpression': Key('city').eq(city),
            }
            venues = []
            while True:
                response = self.venues.query(**kwargs)
                venues.extend(self._item_to_venue(item) for item in response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
            self._venues_by_city[city] = venues
        return self._venues_by_city[city]

    def _create_venue(self, venue: Venue) -> None:
        try:
            self.venues.put_item(
                Item=self._venue_to_item(venue),
                ConditionExpression=Attr('venue_id').not_exists()
            )
            logger.info(f"Created venue '{venue.name}' ({venue.city})")
        except ClientError as e:
            if not _is_conditional_failure(e):
                raise PersistenceError(f"Failed to create venue '{venue.name}': {e}") from e

    # Cities

    def upsert_city(self, name: str) -> None:
        """Record a known city without touching an existing scan flag."""
        self.cities.update_item(
            Key={'name': name},
            UpdateExpression=(
                'SET scan_enabled = if_not_exists(scan_enabled, :disabled), '
                'lat = if_not_exists(lat, :zero), lng = if_not_exists(lng, :zero)'
            ),
            ExpressionAttributeValues={':disabled': False, ':zero': Decimal('0')}
        )

    def get_city_names(self) -> Set[str]:
        return {item['name'] for item in self._scan_all(self.cities)}

    def get_scan_enabled_cities(self) -> List[str]:
        items = self._scan_all(self.cities, FilterExpression=Attr('scan_enabled').eq(True))
        return sorted(item['name'] for item in items)

    # Run lease

    def acquire_lease(self, lease_id: str, owner: str, seconds: int) -> bool:
        """
        Take a time-bounded lease so overlapping runs skip their work.

        Returns:
            True when owner now holds the lease
        """
        if self.leases is None:
            return True

        now = int(time.time())
        try:
            self.leases.put_item(
                Item={'lease_id': lease_id, 'owner': owner, 'expires_at': now + seconds},
                ConditionExpression=Attr('lease_id').not_exists() | Attr('expires_at').lt(now)
            )
        except ClientError as e:
            if _is_conditional_failure(e):
                return False
            raise
        return True

    def release_lease(self, lease_id: str, owner: str) -> None:
        if self.leases is None:
            return
        try:
            self.leases.delete_item(
                Key={'lease_id': lease_id},
                ConditionExpression=Attr('owner').eq(owner)
            )
        except ClientError as e:
            if not _is_conditional_failure(e):
                raise
            logger.warning(f"Lease {lease_id} was no longer held by {owner}")

    # Conversions

    def _scan_all(self, table, **kwargs) -> List[dict]:
        items = []
        while True:
            response = table.scan(**kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                break
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        return items

    def _event_to_item(self, event: Event, venue_id: Optional[str]) -> dict:
        """
        Convert Event object to DynamoDB item.

        Args:
            event: Event object
            venue_id: Id of the resolved stored venue

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'event_id': event.id,
            'title': event.title,
            'description': event.description,
            'event_date': event.event_date,
            'start_time': event.start_time,
            'category': event.category.value,
            'price_info': event.price_info,
            'source_type': event.source_type.value,
            'status': event.status.value,
            'created_at': event.created_at,
        }

        # Add optional fields if present
        if venue_id:
            item['venue_id'] = venue_id
        if event.end_time:
            item['end_time'] = event.end_time
        if event.source_url:
            item['source_url'] = event.source_url
        if event.image_url:
            item['image_url'] = event.image_url
        if event.trusted_confidence is not None:
            item['confidence'] = Decimal(str(event.trusted_confidence))

        return item

    def _venue_to_item(self, venue: Venue) -> dict:
        item = {
            'venue_id': venue.id,
            'name': venue.name,
            'address': venue.address,
            'city': venue.city,
            'lat': Decimal(str(venue.lat)),
            'lng': Decimal(str(venue.lng)),
            'verified': venue.verified,
        }
        if venue.owner_id:
            item['owner_id'] = venue.owner_id
        return item

    def _item_to_venue(self, item: dict) -> Venue:
        return Venue(
            id=item['venue_id'],
            name=item.get('name', ''),
            address=item.get('address', ''),
            city=item.get('city', ''),
            lat=float(item.get('lat', 0)),
            lng=float(item.get('lng', 0)),
            verified=bool(item.get('verified', False)),
            owner_id=item.get('owner_id'),
        )
