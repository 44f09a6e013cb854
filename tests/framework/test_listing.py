"""
Tests for sitefactory.framework.listing.

Tests cover:
- ObjectList filtering, sorting and windowing
- Navigation offsets and page links
- Pager arithmetic, including empty and out-of-range pages
"""

from sitefactory.framework.listing import ObjectList, Pager


class TestObjectList:
    """Tests for ObjectList."""

    def test_everything_by_default(self, factory, albums):
        listing = ObjectList(factory, "album")

        assert listing.total == 3
        assert len(listing) == 3
        assert listing.step == 3
        assert not listing.has_next
        assert not listing.has_previous

    def test_non_column_criteria_dropped(self, factory, albums):
        listing = ObjectList(factory, "album", {"year": 1967, "colour": "purple"})

        assert listing.criteria == {"year": 1967}
        assert list(listing) == [albums["axis"]]

    def test_sort_and_order(self, factory, albums):
        listing = ObjectList(factory, "album", sortby="year", sortorder="DESC")

        assert [album.year for album in listing] == [1968, 1967, 1959]

    def test_unknown_sort_column_ignored(self, factory, albums):
        listing = ObjectList(factory, "album", sortby="colour")

        assert listing.sortby is None
        assert list(listing)[0] is albums["axis"]

    def test_window(self, factory, albums):
        listing = ObjectList(factory, "album", sortby="title", startat="1", step="1")

        assert list(listing) == [albums["ladyland"]]
        assert listing.end == 2
        assert listing.has_next and listing.has_previous
        assert listing.next_start == 2
        assert listing.previous_start == 0

    def test_last_window(self, factory, albums):
        listing = ObjectList(factory, "album", startat=2, step=2)

        assert len(listing) == 1
        assert listing.next_start is None
        assert listing.previous_start == 0

    def test_pages(self, factory, albums):
        assert ObjectList(factory, "album", step=2).pages == [
            {"number": 1, "start": 0},
            {"number": 2, "start": 2},
        ]

    def test_garbage_window_values(self, factory, albums):
        listing = ObjectList(factory, "album", startat="soon", step=-4)

        assert listing.start == 0
        assert listing.step == 3

    def test_empty(self, factory):
        listing = ObjectList(factory, "album")

        assert listing.total == 0
        assert listing.pages == []
        assert list(listing) == []

    def test_from_items(self, factory, albums):
        listing = ObjectList.from_items(factory, [albums["axis"]], source=albums["hendrix"], param="albums")

        assert listing.total == 1
        assert listing.param == "albums"
        assert list(listing) == [albums["axis"]]


class TestPager:
    """Tests for Pager."""

    def test_first_page(self, factory, albums):
        pager = Pager(factory, "album", per_page=2)

        assert pager.total_entries == 3
        assert pager.last_page == 2
        assert pager.current_page == 1
        assert (pager.first, pager.last) == (1, 2)
        assert pager.previous_page is None
        assert pager.next_page == 2
        assert pager.items() == [albums["axis"], albums["ladyland"]]

    def test_page_beyond_end_is_clamped(self, factory, albums):
        pager = Pager(factory, "album", per_page=2, page=9)

        assert pager.current_page == 2
        assert (pager.first, pager.last) == (3, 3)
        assert pager.previous_page == 1
        assert pager.next_page is None

    def test_empty(self, factory):
        pager = Pager(factory, "album")

        assert pager.first == 0
        assert pager.last == 0
        assert pager.last_page == 1
        assert pager.items() == []

    def test_string_arguments(self, factory, albums):
        pager = Pager(factory, "album", per_page="1", page="3")

        assert pager.items() == [albums["kind_of_blue"]]

    def test_criteria(self, factory, albums):
        pager = Pager(factory, "album", criteria={"artist_id": albums["davis"].id})

        assert pager.total_entries == 1
