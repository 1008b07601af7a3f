"""Unit tests for the AI discovery connector."""
import json
from datetime import date, timedelta

import pytest
import requests
import responses

from processor.event_processor import PRICE_FREE
from processor.models import Category, SourceType
from scraper.ai_discovery import AIDiscoveryClient
from scraper.errors import (
    ConfigurationMissingError,
    MalformedResponseError,
    ProviderError,
    RateLimitExhaustedError,
    TransientProviderError,
)
from scraper.retry import RetryPolicy

GEMINI_URL = AIDiscoveryClient.BASE_URL.format(model='gemini-2.0-flash')


def in_days(days):
    return (date.today() + timedelta(days=days)).isoformat()


def ai_item(title='Pub Quiz', days=2, **overrides):
    item = {
        'title': title,
        'description': 'Quiz mit fünf Runden',
        'date': in_days(days),
        'time_start': '19:30',
        'time_end': '22:00',
        'venue_name': 'Irish Pub Shamrock',
        'venue_address': 'Ludwigstraße 5, Passau',
        'city': 'Passau',
        'category': 'nightlife',
        'price_info': 'Kostenlos',
        'source_url': 'https://www.facebook.com/shamrock/events',
        'confidence': 0.8,
    }
    item.update(overrides)
    return item


def gemini_body(text):
    return {'candidates': [{'content': {'parts': [{'text': text}]}}]}


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(sleeps):
    return AIDiscoveryClient(api_key='gemini-key', retry_policy=RetryPolicy(sleep=sleeps.append))


class TestDiscover:
    """Test cases for AIDiscoveryClient.discover."""

    @responses.activate
    def test_maps_valid_events(self, client):
        text = 'Ich habe folgende Events gefunden:\n```json\n' + json.dumps([ai_item()]) + '\n```'
        responses.add(responses.POST, GEMINI_URL, json=gemini_body(text), status=200)

        events = client.discover('Passau')

        assert len(events) == 1
        event = events[0]
        assert event.title == 'Pub Quiz'
        assert event.event_date == in_days(2)
        assert event.start_time == '19:30'
        assert event.end_time == '22:00'
        assert event.category == Category.NIGHTLIFE
        assert event.price_info == PRICE_FREE
        assert event.source_type == SourceType.AI_DISCOVERED
        assert event.confidence == 0.8
        assert event.id.startswith('ai-')
        assert event.venue.name == 'Irish Pub Shamrock'
        assert event.venue.id.startswith('ai-venue-')
        assert not event.venue.has_coordinates

    @responses.activate
    def test_request_enables_search_grounding(self, client):
        responses.add(responses.POST, GEMINI_URL, json=gemini_body('[]'), status=200)

        client.discover('Passau')

        request = responses.calls[0].request
        body = json.loads(request.body)
        assert 'key=gemini-key' in request.url
        assert body['tools'] == [{'google_search': {}}]
        assert 'Passau' in body['contents'][0]['parts'][0]['text']

    @responses.activate
    def test_ids_are_deterministic(self, client):
        responses.add(responses.POST, GEMINI_URL, json=gemini_body(json.dumps([ai_item()])), status=200)

        first = client.discover('Passau')[0]
        second = client.discover('Passau')[0]

        assert first.id == second.id

    @responses.activate
    def test_invalid_items_are_dropped(self, client):
        items = [
            ai_item(title='Kein Ort', venue_name=''),
            ai_item(title='Unsicher', confidence=0.3),
            ai_item(title='Kaputt', confidence='hoch'),
            ai_item(title='Zu spät', days=30),
            ai_item(title='Vorbei', days=-1),
            ai_item(title='Ohne Zeit', time_start='abends'),
            'kein objekt',
            ai_item(title='Quiz Night'),
        ]
        responses.add(responses.POST, GEMINI_URL, json=gemini_body(json.dumps(items)), status=200)

        events = client.discover('Passau')

        assert [e.title for e in events] == ['Quiz Night']

    @responses.activate
    def test_strict_mode_requires_source_url(self, sleeps):
        items = [
            ai_item(title='Ohne Quelle', source_url=None),
            ai_item(title='Falsche Quelle', source_url='facebook'),
            ai_item(title='Mit Quelle'),
        ]
        responses.add(responses.POST, GEMINI_URL, json=gemini_body(json.dumps(items)), status=200)

        strict = AIDiscoveryClient(
            api_key='gemini-key',
            require_source_url=True,
            retry_policy=RetryPolicy(sleep=sleeps.append)
        )
        lenient = AIDiscoveryClient(
            api_key='gemini-key',
            retry_policy=RetryPolicy(sleep=sleeps.append)
        )

        assert [e.title for e in strict.discover('Passau')] == ['Mit Quelle']
        assert [e.title for e in lenient.discover('Passau')] == ['Ohne Quelle', 'Falsche Quelle', 'Mit Quelle']

    @responses.activate
    def test_truncated_answer_is_repaired(self, client):
        text = '[' + json.dumps(ai_item(title='Karaoke')) + ', {"title": "Poetry Sl'
        responses.add(responses.POST, GEMINI_URL, json=gemini_body(text), status=200)

        events = client.discover('Passau')

        assert [e.title for e in events] == ['Karaoke']

    @responses.activate
    def test_unparseable_answer_yields_no_events(self, client):
        responses.add(
            responses.POST, GEMINI_URL,
            json=gemini_body('Leider habe ich nichts gefunden.'),
            status=200
        )

        assert client.discover('Passau') == []

    @responses.activate
    def test_no_candidates_yields_no_events(self, client):
        responses.add(responses.POST, GEMINI_URL, json={'candidates': []}, status=200)

        assert client.discover('Passau') == []

    @responses.activate
    def test_rate_limit_retried_then_succeeds(self, client, sleeps):
        for _ in range(3):
            responses.add(responses.POST, GEMINI_URL, json={'error': 'quota'}, status=429)
        responses.add(responses.POST, GEMINI_URL, json=gemini_body(json.dumps([ai_item()])), status=200)

        events = client.discover('Passau')

        assert len(events) == 1
        assert len(responses.calls) == 4
        assert sleeps == [2.0, 4.0, 8.0]

    @responses.activate
    def test_rate_limit_exhausted(self, client, sleeps):
        for _ in range(4):
            responses.add(responses.POST, GEMINI_URL, json={'error': 'quota'}, status=429)

        with pytest.raises(RateLimitExhaustedError):
            client.discover('Passau')

        assert len(responses.calls) == 4
        assert sleeps == [2.0, 4.0, 8.0]

    @responses.activate
    def test_other_error_status_raises_provider_error(self, client, sleeps):
        responses.add(responses.POST, GEMINI_URL, json={'error': 'bad request'}, status=400)

        with pytest.raises(ProviderError) as exc_info:
            client.discover('Passau')

        assert exc_info.value.status_code == 400
        assert sleeps == []

    @responses.activate
    def test_network_failure_raises_transient_error(self, client):
        responses.add(responses.POST, GEMINI_URL, body=requests.exceptions.ConnectionError('unreachable'))

        with pytest.raises(TransientProviderError):
            client.discover('Passau')

    @responses.activate
    def test_invalid_json_body_raises_malformed_response(self, client):
        responses.add(responses.POST, GEMINI_URL, body='<html>busy</html>', status=200)

        with pytest.raises(MalformedResponseError):
            client.discover('Passau')

    @responses.activate
    def test_non_object_body_raises_malformed_response(self, client):
        responses.add(responses.POST, GEMINI_URL, json=[gemini_body('[]')], status=200)

        with pytest.raises(MalformedResponseError):
            client.discover('Passau')

    @responses.activate
    def test_odd_candidate_shapes_yield_no_events(self, client):
        for body in (
            {'candidates': ['text']},
            {'candidates': [{'content': {'parts': 'text'}}]},
            {'candidates': [{'content': {'parts': ['text', {'text': None}]}}]},
        ):
            responses.add(responses.POST, GEMINI_URL, json=body, status=200)

        assert client.discover('Passau') == []
        assert client.discover('Passau') == []
        assert client.discover('Passau') == []

    def test_missing_key_raises_configuration_error(self):
        with pytest.raises(ConfigurationMissingError):
            AIDiscoveryClient(api_key='').discover('Passau')


class TestFetch:
    """Test cases for the background entry point."""

    @responses.activate
    def test_fetch_swallows_rate_limit(self, client):
        responses.add(responses.POST, GEMINI_URL, status=429)

        assert client.fetch('Passau') == []

    @responses.activate
    def test_fetch_swallows_provider_error(self, client):
        responses.add(responses.POST, GEMINI_URL, status=500)

        assert client.fetch('Passau') == []

    @responses.activate
    def test_fetch_swallows_non_object_body(self, client):
        responses.add(responses.POST, GEMINI_URL, json=[{'candidates': []}], status=200)

        assert client.fetch('Passau') == []

    def test_fetch_without_key_is_silent(self):
        assert AIDiscoveryClient(api_key=None).fetch('Passau') == []
