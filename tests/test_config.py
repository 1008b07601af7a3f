"""Unit tests for environment settings."""
from processor.config import Settings


def test_defaults_from_empty_environment():
    settings = Settings.from_env({})

    assert settings.ticketmaster_api_key == ''
    assert settings.events_table == 'events'
    assert settings.days_ahead == 90
    assert settings.ai_horizon_days == 14
    assert settings.ai_min_confidence == 0.6
    assert settings.archive_grace_days == 0


def test_values_read_from_environment():
    settings = Settings.from_env({
        'TICKETMASTER_API_KEY': 'tm',
        'GEMINI_API_KEY': 'gm',
        'EVENTS_TABLE_NAME': 'prod-events',
        'LEASE_TABLE_NAME': 'prod-leases',
        'DAYS_AHEAD': '30',
        'AI_MIN_CONFIDENCE': '0.75',
        'CITY_DELAY_SECONDS': '2.5',
    })

    assert settings.ticketmaster_api_key == 'tm'
    assert settings.gemini_api_key == 'gm'
    assert settings.events_table == 'prod-events'
    assert settings.lease_table == 'prod-leases'
    assert settings.days_ahead == 30
    assert settings.ai_min_confidence == 0.75
    assert settings.city_delay_seconds == 2.5


def test_invalid_numbers_fall_back_to_defaults():
    settings = Settings.from_env({'DAYS_AHEAD': 'ninety', 'AI_MIN_CONFIDENCE': 'high'})

    assert settings.days_ahead == 90
    assert settings.ai_min_confidence == 0.6
