"""Unit tests for event similarity rules."""
from dataclasses import replace

from processor.similarity import (
    are_similar,
    coords_are_close,
    edit_distance,
    fuzzy_similarity,
    normalize_for_comparison,
    same_venue,
    start_times_overlap,
)


class TestNormalization:
    """Test cases for string normalization and fuzzy scores."""

    def test_normalize_strips_case_and_punctuation(self):
        assert normalize_for_comparison('Club XYZ') == 'clubxyz'
        assert normalize_for_comparison('club-xyz!!') == 'clubxyz'
        assert normalize_for_comparison('Bräustüberl Straße') == 'bräustüberlstraße'
        assert normalize_for_comparison(None) == ''

    def test_venue_names_differing_in_case_and_punctuation(self):
        a = normalize_for_comparison('Club XYZ')
        b = normalize_for_comparison('club-xyz!!')
        assert fuzzy_similarity(a, b) == 1.0

    def test_edit_distance(self):
        assert edit_distance('kitten', 'sitting') == 3
        assert edit_distance('', 'abc') == 3
        assert edit_distance('abc', 'abc') == 0

    def test_fuzzy_similarity_is_symmetric(self):
        assert fuzzy_similarity('jazzabend', 'jazzabende') == fuzzy_similarity('jazzabende', 'jazzabend')
        assert fuzzy_similarity('kitten', 'sitting') == 1.0 - 3 / 7

    def test_fuzzy_similarity_empty(self):
        assert fuzzy_similarity('', '') == 1.0
        assert fuzzy_similarity('', 'abc') == 0.0


class TestVenueMatching:
    """Test cases for loose venue identity."""

    def test_name_containment(self, make_venue):
        assert same_venue(make_venue('Alte Mälzerei'), make_venue('Alte Mälzerei Regensburg'))

    def test_fuzzy_name(self, make_venue):
        assert same_venue(make_venue('Scheune Passau'), make_venue('Scheune Pasau'))

    def test_coordinates_within_500m(self, make_venue):
        a = make_venue('Stadthalle', lat=48.5665, lng=13.4312)
        b = make_venue('Kulturzentrum', lat=48.5690, lng=13.4340)
        assert coords_are_close(a, b)
        assert same_venue(a, b)

    def test_unknown_coordinates_never_close(self, make_venue):
        a = make_venue('Stadthalle')
        b = make_venue('Kulturzentrum')
        assert not coords_are_close(a, b)
        assert not same_venue(a, b)

    def test_missing_venue(self, make_venue):
        assert not same_venue(None, make_venue())
        assert not coords_are_close(make_venue(lat=1.0, lng=1.0), None)


class TestAreSimilar:
    """Test cases for the duplicate decision rules."""

    def test_different_dates_never_similar(self, make_event):
        a = make_event(title='Jazz im Park', days_from_today=1)
        b = make_event(title='Jazz im Park', days_from_today=2)
        assert not are_similar(a, b)

    def test_identical_copy_is_similar(self, make_event):
        event = make_event()
        assert are_similar(event, event)

    def test_same_venue_close_start_times(self, make_event, make_venue):
        a = make_event(title='Open Mic', start_time='19:00', venue=make_venue('Kulturcafé'))
        b = make_event(title='Songwriter Abend', start_time='20:15', venue=make_venue('Kulturcafe'))
        assert are_similar(a, b)

    def test_same_venue_far_apart_start_times(self, make_event, make_venue):
        a = make_event(title='Frühschoppen', start_time='10:00', venue=make_venue('Kulturcafé'))
        b = make_event(title='Nachtkonzert', start_time='22:00', venue=make_venue('Kulturcafé'))
        assert not are_similar(a, b)

    def test_unknown_start_time_overlaps(self, make_event):
        a = make_event(start_time='')
        b = make_event(start_time='21:00')
        assert start_times_overlap(a, b)

    def test_title_containment(self, make_event, make_venue):
        a = make_event(title='Pub Quiz', venue=make_venue('Irish Pub'))
        b = make_event(title='Pub Quiz Night!', start_time='10:00', venue=make_venue('Stadtbücherei'))
        assert are_similar(a, b)

    def test_similar_titles(self, make_event, make_venue):
        a = make_event(title='Weinprobe am Donauufer', venue=make_venue('Weinbar'))
        b = make_event(title='Weinprobe am Donauuffer', start_time='10:00', venue=make_venue('Biergarten'))
        assert are_similar(a, b)

    def test_nearby_venue_with_moderately_similar_titles(self, make_event, make_venue):
        a = make_event(
            title='Salsa Tanzabend',
            venue=make_venue('Tanzschule Nord', lat=49.0134, lng=12.1016)
        )
        b = make_event(
            title='Salsa Tanznacht',
            start_time='10:00',
            venue=make_venue('Studio Eins', lat=49.0150, lng=12.1030)
        )
        assert are_similar(a, b)

    def test_unrelated_events(self, make_event, make_venue):
        a = make_event(title='Flohmarkt', start_time='09:00', venue=make_venue('Dultplatz'))
        b = make_event(title='Poetry Slam', start_time='20:00', venue=make_venue('Theater am Haidplatz'))
        assert not are_similar(a, b)

    def test_empty_normalized_title_is_contained_in_any_title(self, make_event, make_venue):
        a = make_event(title='!!!', start_time='09:00', venue=make_venue('Dultplatz'))
        b = make_event(title='Poetry Slam', start_time='20:00', venue=make_venue('Theater'))
        assert are_similar(a, b)

    def test_identical_copy_with_non_latin_title_and_no_venue(self, make_event):
        event = replace(make_event(title='Концерт'), venue=None)
        copy = replace(event, id='ai-kontsert')

        assert normalize_for_comparison(event.title) == ''
        assert are_similar(event, event)
        assert are_similar(event, copy)
