"""Shared fixtures for the test suite."""
from datetime import date, timedelta

import boto3
import pytest
from moto import mock_aws

from processor.models import Category, Event, SourceType, Venue


@pytest.fixture
def make_venue():
    """Factory for Venue objects with sensible defaults."""
    def _make(name='Alte Mälzerei', city='Regensburg', lat=0.0, lng=0.0, venue_id=None):
        return Venue(
            id=venue_id or f"venue-{name.lower().replace(' ', '-')}",
            name=name,
            address=f"{name}, {city}",
            city=city,
            lat=lat,
            lng=lng,
        )
    return _make


@pytest.fixture
def make_event(make_venue):
    """Factory for Event objects dated relative to today."""
    def _make(
        title='Jazz im Park',
        days_from_today=3,
        event_date=None,
        start_time='20:00',
        venue=None,
        source_type=SourceType.TICKETMASTER,
        image_url=None,
        event_id=None,
        confidence=0.95,
        source_url='https://example.com/event'
    ):
        event_date = event_date or (date.today() + timedelta(days=days_from_today)).isoformat()
        return Event(
            id=event_id or f"{source_type.value}-{title}-{event_date}",
            title=title,
            description='Ein Abend mit Live-Musik',
            venue=venue if venue is not None else make_venue(),
            event_date=event_date,
            start_time=start_time,
            end_time=None,
            category=Category.CONCERT,
            price_info='See Ticketmaster',
            source_type=source_type,
            source_url=source_url,
            confidence=confidence,
            image_url=image_url,
        )
    return _make


def _create_tables(dynamodb):
    throughput = {'ReadCapacityUnits': 5, 'WriteCapacityUnits': 5}

    dynamodb.create_table(
        TableName='test-events',
        KeySchema=[
            {'AttributeName': 'event_id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'event_id', 'AttributeType': 'S'},
            {'AttributeName': 'status', 'AttributeType': 'S'},
            {'AttributeName': 'event_date', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'status-date-index',
                'KeySchema': [
                    {'AttributeName': 'status', 'KeyType': 'HASH'},
                    {'AttributeName': 'event_date', 'KeyType': 'RANGE'}
                ],
                'Projection': {'ProjectionType': 'ALL'},
                'ProvisionedThroughput': throughput
            }
        ],
        BillingMode='PROVISIONED',
        ProvisionedThroughput=throughput
    )

    dynamodb.create_table(
        TableName='test-venues',
        KeySchema=[
            {'AttributeName': 'venue_id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'venue_id', 'AttributeType': 'S'},
            {'AttributeName': 'city', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'city-index',
                'KeySchema': [
                    {'AttributeName': 'city', 'KeyType': 'HASH'}
                ],
                'Projection': {'ProjectionType': 'ALL'},
                'ProvisionedThroughput': throughput
            }
        ],
        BillingMode='PROVISIONED',
        ProvisionedThroughput=throughput
    )

    dynamodb.create_table(
        TableName='test-cities',
        KeySchema=[{'AttributeName': 'name', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'name', 'AttributeType': 'S'}],
        BillingMode='PROVISIONED',
        ProvisionedThroughput=throughput
    )

    dynamodb.create_table(
        TableName='test-leases',
        KeySchema=[{'AttributeName': 'lease_id', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'lease_id', 'AttributeType': 'S'}],
        BillingMode='PROVISIONED',
        ProvisionedThroughput=throughput
    )


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never looks for real ones."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb(aws_credentials):
    """Mocked DynamoDB resource with the events, venues, cities and lease tables."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')
        _create_tables(resource)
        yield resource
