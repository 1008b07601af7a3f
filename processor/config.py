"""Runtime settings read from environment variables."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    try:
        return int(env.get(name, default))
    except (TypeError, ValueError):
        return default


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    try:
        return float(env.get(name, default))
    except (TypeError, ValueError):
        return default


@dataclass
class Settings:
    """
    Credentials, table names and tunables.

    A missing provider credential disables that provider; it is never a
    startup failure.
    """
    ticketmaster_api_key: str = ''
    eventbrite_api_key: str = ''
    seatgeek_client_id: str = ''
    gemini_api_key: str = ''
    gemini_model: str = 'gemini-2.0-flash'
    events_table: str = 'events'
    venues_table: str = 'venues'
    cities_table: str = 'cities'
    lease_table: str = 'scan-leases'
    log_level: str = 'INFO'
    days_ahead: int = 90
    ai_horizon_days: int = 14
    timeout_seconds: int = 30
    max_pages: int = 5
    page_size: int = 200
    ai_min_confidence: float = 0.6
    city_delay_seconds: float = 1.0
    page_delay_seconds: float = 0.3
    archive_grace_days: int = 0
    lease_seconds: int = 900

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> 'Settings':
        env = os.environ if env is None else env
        return cls(
            ticketmaster_api_key=env.get('TICKETMASTER_API_KEY', ''),
            eventbrite_api_key=env.get('EVENTBRITE_API_KEY', ''),
            seatgeek_client_id=env.get('SEATGEEK_CLIENT_ID', ''),
            gemini_api_key=env.get('GEMINI_API_KEY', ''),
            gemini_model=env.get('GEMINI_MODEL', cls.gemini_model),
            events_table=env.get('EVENTS_TABLE_NAME', cls.events_table),
            venues_table=env.get('VENUES_TABLE_NAME', cls.venues_table),
            cities_table=env.get('CITIES_TABLE_NAME', cls.cities_table),
            lease_table=env.get('LEASE_TABLE_NAME', cls.lease_table),
            log_level=env.get('LOG_LEVEL', cls.log_level),
            days_ahead=_int(env, 'DAYS_AHEAD', cls.days_ahead),
            ai_horizon_days=_int(env, 'AI_HORIZON_DAYS', cls.ai_horizon_days),
            timeout_seconds=_int(env, 'TIMEOUT_SECONDS', cls.timeout_seconds),
            max_pages=_int(env, 'MAX_PAGES', cls.max_pages),
            page_size=_int(env, 'PAGE_SIZE', cls.page_size),
            ai_min_confidence=_float(env, 'AI_MIN_CONFIDENCE', cls.ai_min_confidence),
            city_delay_seconds=_float(env, 'CITY_DELAY_SECONDS', cls.city_delay_seconds),
            page_delay_seconds=_float(env, 'PAGE_DELAY_SECONDS', cls.page_delay_seconds),
            archive_grace_days=_int(env, 'ARCHIVE_GRACE_DAYS', cls.archive_grace_days),
            lease_seconds=_int(env, 'LEASE_SECONDS', cls.lease_seconds),
        )
