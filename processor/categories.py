"""Mapping of provider taxonomies onto the internal category set."""
from typing import Optional

from processor.models import Category


EVENTBRITE_CATEGORY_MAP = {
    '103': Category.CONCERT,      # Music
    '104': Category.ART,          # Film & Media
    '105': Category.ART,          # Performing & Visual Arts
    '106': Category.OTHER,        # Fashion
    '107': Category.OTHER,        # Health
    '108': Category.SPORTS,       # Sports & Fitness
    '109': Category.OTHER,        # Travel & Outdoor
    '110': Category.FOOD_DRINK,   # Food & Drink
    '111': Category.OTHER,        # Charity & Causes
    '112': Category.OTHER,        # Government & Politics
    '113': Category.OTHER,        # Community & Culture
    '114': Category.OTHER,        # Religion & Spirituality
    '115': Category.FAMILY,       # Family & Education
    '116': Category.OTHER,        # Seasonal & Holiday
    '117': Category.OTHER,        # Business & Professional
    '118': Category.OTHER,        # Science & Technology
    '119': Category.NIGHTLIFE,
    '199': Category.OTHER,
}

TICKETMASTER_SEGMENT_MAP = {
    'Music': Category.CONCERT,
    'Sports': Category.SPORTS,
    'Arts & Theatre': Category.ART,
    'Film': Category.ART,
    'Miscellaneous': Category.OTHER,
    'Undefined': Category.OTHER,
}

TICKETMASTER_GENRE_MAP = {
    'Club': Category.NIGHTLIFE,
    'Dance/Electronic': Category.NIGHTLIFE,
    'DJ': Category.NIGHTLIFE,
    'Rock': Category.CONCERT,
    'Pop': Category.CONCERT,
    'Hip-Hop/Rap': Category.CONCERT,
    'R&B': Category.CONCERT,
    'Jazz': Category.CONCERT,
    'Classical': Category.CONCERT,
    'Metal': Category.CONCERT,
    'Alternative': Category.CONCERT,
    'Folk': Category.CONCERT,
    'Country': Category.CONCERT,
    'Latin': Category.CONCERT,
    'Reggae': Category.CONCERT,
    'Blues': Category.CONCERT,
    'World': Category.CONCERT,
    'Comedy': Category.ART,
    'Theatre': Category.ART,
    'Opera': Category.ART,
    'Dance': Category.ART,
    'Circus & Specialty Acts': Category.FAMILY,
    'Fairs & Festivals': Category.FESTIVAL,
    'Festival': Category.FESTIVAL,
    'Food & Drink': Category.FOOD_DRINK,
    'Family': Category.FAMILY,
    'Soccer': Category.SPORTS,
    'Football': Category.SPORTS,
    'Basketball': Category.SPORTS,
    'Ice Hockey': Category.SPORTS,
    'Tennis': Category.SPORTS,
    'Boxing': Category.SPORTS,
    'Motorsports/Racing': Category.SPORTS,
}

SEATGEEK_TYPE_MAP = {
    'concert': Category.CONCERT,
    'music_festival': Category.FESTIVAL,
    'theater': Category.ART,
    'comedy': Category.ART,
    'dance_performance_tour': Category.ART,
    'classical': Category.CONCERT,
    'opera': Category.ART,
    'literary': Category.ART,
    'film': Category.ART,
    'circus': Category.FAMILY,
    'family': Category.FAMILY,
    'sports': Category.SPORTS,
    'soccer': Category.SPORTS,
    'football': Category.SPORTS,
    'basketball': Category.SPORTS,
    'ice_hockey': Category.SPORTS,
    'tennis': Category.SPORTS,
    'baseball': Category.SPORTS,
    'golf': Category.SPORTS,
    'boxing': Category.SPORTS,
    'mma': Category.SPORTS,
    'wrestling': Category.SPORTS,
    'motorsports': Category.SPORTS,
    'minor_league_sports': Category.SPORTS,
    'nfl': Category.SPORTS,
    'nba': Category.SPORTS,
    'mlb': Category.SPORTS,
    'nhl': Category.SPORTS,
    'ncaa_football': Category.SPORTS,
    'ncaa_basketball': Category.SPORTS,
    'food_and_drink': Category.FOOD_DRINK,
    'nightlife': Category.NIGHTLIFE,
    'club': Category.NIGHTLIFE,
    'festival': Category.FESTIVAL,
}


def map_eventbrite_category(category_id: Optional[str]) -> Category:
    if not category_id:
        return Category.OTHER
    return EVENTBRITE_CATEGORY_MAP.get(str(category_id), Category.OTHER)


def map_ticketmaster_classification(
    segment_name: Optional[str],
    genre_name: Optional[str]
) -> Category:
    """
    Map a Ticketmaster segment/genre pair to a category.

    The genre is more specific than the segment, so it is consulted first.
    """
    if genre_name and genre_name in TICKETMASTER_GENRE_MAP:
        return TICKETMASTER_GENRE_MAP[genre_name]
    if segment_name and segment_name in TICKETMASTER_SEGMENT_MAP:
        return TICKETMASTER_SEGMENT_MAP[segment_name]
    return Category.OTHER


def map_seatgeek_type(type_name: Optional[str]) -> Category:
    if not type_name:
        return Category.OTHER
    normalized = type_name.lower().replace(' ', '_').replace('-', '_')
    return SEATGEEK_TYPE_MAP.get(normalized, Category.OTHER)


def coerce_category(value: Optional[str]) -> Category:
    """Accept a category reported verbatim (e.g. by the AI), else OTHER."""
    if not isinstance(value, str) or not value:
        return Category.OTHER
    try:
        return Category(value.strip().lower())
    except ValueError:
        return Category.OTHER
