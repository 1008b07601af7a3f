"""Decide whether two canonical events describe the same real-world event."""
import re
from typing import Optional

from processor.models import Event, Venue

VENUE_NAME_THRESHOLD = 0.85
TITLE_THRESHOLD = 0.8
NEARBY_TITLE_THRESHOLD = 0.6
COORD_TOLERANCE = 0.005  # degrees, roughly 500 m
START_TIME_WINDOW_MINUTES = 90

_NON_COMPARABLE = re.compile(r'[^a-z0-9äöüß]')


def normalize_for_comparison(value: Optional[str]) -> str:
    if not value:
        return ''
    return _NON_COMPARABLE.sub('', value.lower())


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance using a single rolling row."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def fuzzy_similarity(a: str, b: str) -> float:
    """
    Similarity in [0, 1]: 1 - edit distance / length of the longer string.

    Callers pass strings already run through normalize_for_comparison.
    """
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest


def coords_are_close(a: Optional[Venue], b: Optional[Venue]) -> bool:
    if a is None or b is None:
        return False
    if not a.has_coordinates or not b.has_coordinates:
        return False
    return (
        abs(a.lat - b.lat) < COORD_TOLERANCE
        and abs(a.lng - b.lng) < COORD_TOLERANCE
    )


def same_venue(a: Optional[Venue], b: Optional[Venue]) -> bool:
    """Loose venue identity: name equality, containment, fuzzy name, or geo."""
    name_a = normalize_for_comparison(a.name if a else None)
    name_b = normalize_for_comparison(b.name if b else None)
    if name_a and name_b:
        if name_a == name_b:
            return True
        if name_a in name_b or name_b in name_a:
            return True
        if fuzzy_similarity(name_a, name_b) > VENUE_NAME_THRESHOLD:
            return True
    return coords_are_close(a, b)


def _minutes(value: str) -> Optional[int]:
    try:
        hours, minutes = value.split(':')[:2]
        return int(hours) * 60 + int(minutes)
    except (AttributeError, ValueError):
        return None


def start_times_overlap(a: Event, b: Event) -> bool:
    """Start times within the window; an unknown start time overlaps anything."""
    start_a = _minutes(a.start_time)
    start_b = _minutes(b.start_time)
    if start_a is None or start_b is None:
        return True
    return abs(start_a - start_b) <= START_TIME_WINDOW_MINUTES


def are_similar(a: Event, b: Event) -> bool:
    """
    Return True when both events describe the same real-world event.

    Events on different dates are never similar. Otherwise the first
    matching rule decides:

    1. same venue and start times within 90 minutes
    2. normalized titles equal or one contains the other
    3. title similarity above 0.8
    4. venues within ~500 m and title similarity above 0.6
    """
    if a.event_date != b.event_date:
        return False

    if same_venue(a.venue, b.venue) and start_times_overlap(a, b):
        return True

    title_a = normalize_for_comparison(a.title)
    title_b = normalize_for_comparison(b.title)

    # An empty normalized title is contained in every title
    if title_a == title_b:
        return True
    if title_a in title_b or title_b in title_a:
        return True

    title_similarity = fuzzy_similarity(title_a, title_b)
    if title_similarity > TITLE_THRESHOLD:
        return True

    return coords_are_close(a.venue, b.venue) and title_similarity > NEARBY_TITLE_THRESHOLD
