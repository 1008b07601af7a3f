"""Event processor for normalizing provider fields into canonical values."""
import hashlib
import logging
import re
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

from processor.models import Event

logger = logging.getLogger(__name__)

PRICE_FREE = 'free'
FREE_WORDING = {'free', 'kostenlos', 'gratis', 'eintritt frei', 'freier eintritt', '0€', '0 €'}


class EventProcessor:
    """Shared field normalization used by all source connectors."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 300
    IMAGE_MIN_WIDTH = 500
    IMAGE_MAX_WIDTH = 1200

    def normalize_date(self, date_str: Optional[str]) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Args:
            date_str: Date string in various formats, or an ISO datetime

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        if not date_str or not isinstance(date_str, str):
            return None

        value = date_str.strip()
        # Provider local datetimes ("2025-06-01T19:30:00") carry the date first
        if 'T' in value:
            value = value.split('T', 1)[0]

        date_formats = [
            '%Y-%m-%d',      # ISO 8601
            '%d.%m.%Y',      # German format
            '%m/%d/%Y',      # US format
            '%Y/%m/%d',      # Alternative ISO format
        ]

        for fmt in date_formats:
            try:
                date_obj = datetime.strptime(value, fmt)
                return date_obj.strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def normalize_time(self, time_str: Optional[str]) -> Optional[str]:
        """
        Normalize time to 24-hour format (HH:MM).

        Args:
            time_str: Time string, or an ISO datetime whose time part is used

        Returns:
            24-hour formatted time string or None if parsing fails
        """
        if not time_str or not isinstance(time_str, str):
            return None

        value = time_str.strip()
        if 'T' in value:
            value = value.split('T', 1)[1]

        time_formats = [
            '%H:%M',         # 24-hour format
            '%H:%M:%S',      # 24-hour with seconds
            '%H.%M',         # German style
            '%I:%M %p',      # 12-hour format with AM/PM
            '%I:%M%p',       # 12-hour format without space
        ]

        for fmt in time_formats:
            try:
                time_obj = datetime.strptime(value, fmt)
                return time_obj.strftime('%H:%M')
            except ValueError:
                continue

        return None

    def clean_title(self, title: Optional[str]) -> str:
        if not isinstance(title, str) or not title:
            return ''
        return ' '.join(title.split())[:self.MAX_TITLE_LENGTH]

    def clean_description(self, text: Optional[str]) -> str:
        """
        Strip markup from a provider description and truncate it.

        Args:
            text: Plain text or HTML fragment

        Returns:
            Plain text of at most MAX_DESCRIPTION_LENGTH characters
        """
        if not isinstance(text, str) or not text:
            return ''
        if '<' in text:
            text = BeautifulSoup(text, 'html.parser').get_text(' ', strip=True)
        text = ' '.join(text.split())
        return text[:self.MAX_DESCRIPTION_LENGTH]

    def in_horizon(
        self,
        event_date: str,
        days_ahead: int,
        today: Optional[date] = None
    ) -> bool:
        """Whether event_date falls within today .. today + days_ahead."""
        today = today or date.today()
        end = today + timedelta(days=days_ahead)
        return today.isoformat() <= event_date <= end.isoformat()

    def format_price(
        self,
        min_price: Optional[float],
        max_price: Optional[float],
        currency: Optional[str] = 'EUR'
    ) -> Optional[str]:
        """
        Normalize a price range into one display string.

        Returns:
            PRICE_FREE when the minimum is zero, "X–Y€" for a range,
            "X€" for a single value, or None when no price is known
        """
        if min_price is None and max_price is None:
            return None

        symbol = '€' if (currency or 'EUR') == 'EUR' else currency
        if min_price is None:
            min_price = max_price
        if min_price == 0:
            return PRICE_FREE
        if max_price is None or max_price == min_price:
            return f"{min_price:g}{symbol}"
        return f"{min_price:g}–{max_price:g}{symbol}"

    def normalize_price_text(self, text: Optional[str]) -> Optional[str]:
        """Map free-text zero-cost wording onto PRICE_FREE."""
        if not isinstance(text, str) or not text.strip():
            return None
        value = ' '.join(text.split())
        if value.lower() in FREE_WORDING:
            return PRICE_FREE
        return value

    def select_best_image(self, images: Optional[Iterable[dict]]) -> Optional[str]:
        """
        Pick a mid-large image from a multi-resolution list.

        Oversized assets are often low-quality crops, so the widest image
        inside the preferred width band wins; the widest overall is the
        fallback.
        """
        candidates = [
            img for img in (images or [])
            if isinstance(img, dict) and img.get('url')
        ]
        if not candidates:
            return None

        real = [img for img in candidates if not img.get('fallback')]
        if real:
            candidates = real

        def width(img: dict) -> int:
            try:
                return int(img.get('width') or 0)
            except (TypeError, ValueError):
                return 0

        in_band = [
            img for img in candidates
            if self.IMAGE_MIN_WIDTH <= width(img) <= self.IMAGE_MAX_WIDTH
        ]
        pool = in_band or candidates
        return max(pool, key=width)['url']

    def generate_event_id(self, prefix: str, *parts: str) -> str:
        """
        Derive a deterministic, provider-prefixed id.

        Args:
            prefix: Provider prefix such as "ai" or "ai-venue"
            parts: Values identifying the upstream record

        Returns:
            "<prefix>-<first 16 hex chars of SHA256>"
        """
        composite = '|'.join(re.sub(r'\s+', ' ', p.strip().lower()) for p in parts)
        hash_obj = hashlib.sha256(composite.encode('utf-8'))
        return f"{prefix}-{hash_obj.hexdigest()[:16]}"

    def filter_horizon(
        self,
        events: List[Event],
        days_ahead: int,
        today: Optional[date] = None
    ) -> List[Event]:
        """Drop events outside the forward-looking scan horizon."""
        kept = [e for e in events if self.in_horizon(e.event_date, days_ahead, today)]
        dropped = len(events) - len(kept)
        if dropped:
            logger.info(f"Dropped {dropped} events outside the {days_ahead}-day horizon")
        return kept
