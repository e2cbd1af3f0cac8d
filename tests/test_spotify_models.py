"""Test Spotify data models"""

from datetime import datetime, timezone

import pytest

from spot_updater.spotify.models import Album, NewTrack, Page, ReleaseDate


def album(album_id, release_date, album_type="album"):
    return Album.from_spotify_api({
        "id": album_id,
        "name": album_id,
        "album_type": album_type,
        "release_date": release_date,
        "tracks": {"items": [], "total": 0},
    })


class TestReleaseDate:
    """Test partial-precision release dates"""

    @pytest.mark.parametrize("value, expected", [
        ("2020", ReleaseDate(2020)),
        ("2020-03", ReleaseDate(2020, 3)),
        ("2020-03-15", ReleaseDate(2020, 3, 15)),
        ("1969-00-00", ReleaseDate(1969)),
        ("2020-03-00", ReleaseDate(2020, 3)),
    ])
    def test_parse(self, value, expected):
        """Test each precision is parsed without inventing components"""
        assert ReleaseDate.parse(value) == expected

    @pytest.mark.parametrize("value", [None, "", "unknown", "20x0-01"])
    def test_parse_invalid(self, value):
        """Test missing or malformed dates parse to None"""
        assert ReleaseDate.parse(value) is None

    def test_missing_components_sort_first(self):
        """Test year < year-month < year-month-day for the same period"""
        dates = [ReleaseDate(2020, 1, 1), ReleaseDate(2020), ReleaseDate(2020, 1)]

        assert sorted(dates, key=lambda d: d.sort_key) == [
            ReleaseDate(2020), ReleaseDate(2020, 1), ReleaseDate(2020, 1, 1)
        ]
        assert ReleaseDate(2020).compare(ReleaseDate(2020, 1)) < 0
        assert ReleaseDate(2020, 5).compare(ReleaseDate(2020, 5)) == 0
        assert ReleaseDate(2021).compare(ReleaseDate(2020, 12, 31)) > 0

    @pytest.mark.parametrize("release, expected", [
        (ReleaseDate(2021), True),
        (ReleaseDate(2019, 12, 31), False),
        (ReleaseDate(2020), True),
        (ReleaseDate(2020, 2), False),
        (ReleaseDate(2020, 3), True),
        (ReleaseDate(2020, 4), True),
        (ReleaseDate(2020, 3, 9), False),
        (ReleaseDate(2020, 3, 10), True),
        (ReleaseDate(2020, 3, 11), True),
    ])
    def test_is_after(self, release, expected):
        """Test filtering against a watermark errs toward inclusion on ties"""
        watermark = datetime(2020, 3, 10, 18, 45, tzinfo=timezone.utc)

        assert release.is_after(watermark) is expected

    def test_start(self):
        """Test the first instant of each precision"""
        assert ReleaseDate(2020).start() == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert ReleaseDate(2020, 3).start() == datetime(2020, 3, 1, tzinfo=timezone.utc)
        assert ReleaseDate(2020, 3, 15).start() == datetime(2020, 3, 15, tzinfo=timezone.utc)

    def test_str(self):
        """Test dates print at their own precision"""
        assert str(ReleaseDate(2020)) == "2020"
        assert str(ReleaseDate(2020, 3)) == "2020-03"
        assert str(ReleaseDate(2020, 3, 5)) == "2020-03-05"


class TestAlbumOrdering:
    """Test album sorting by release date and type"""

    def test_sort_by_date_then_type(self):
        """Test year, month, day order with singles first on equal dates"""
        albums = [
            album("a_2021", "2021"),
            album("a_2020_03_15", "2020-03-15"),
            album("s_2020", "2020", "single"),
            album("a_2020_03", "2020-03"),
            album("s_2020_03", "2020-03", "single"),
            album("a_2020", "2020"),
        ]

        ordered = sorted(albums, key=lambda a: a.release_sort_key)

        assert [a.id for a in ordered] == [
            "s_2020", "a_2020", "s_2020_03", "a_2020_03", "a_2020_03_15", "a_2021"
        ]

    def test_sort_is_stable(self):
        """Test albums with equal date and type keep their input order"""
        albums = [album("first", "2020-03"), album("second", "2020-03"), album("third", "2020-03")]

        ordered = sorted(reversed(albums), key=lambda a: a.release_sort_key)

        assert [a.id for a in ordered] == ["third", "second", "first"]

    def test_album_from_api(self):
        """Test Album parses its release date and first tracks page"""
        data = {
            "id": "al1",
            "name": "Record",
            "album_type": "single",
            "release_date": "2022-07",
            "uri": "spotify:album:al1",
            "tracks": {"items": [{"id": "t1"}], "total": 3, "next": "https://next"},
        }

        parsed = Album.from_spotify_api(data)

        assert parsed.is_single
        assert parsed.release_date == ReleaseDate(2022, 7)
        assert parsed.tracks.total == 3
        assert parsed.tracks.next == "https://next"


class TestPageAndNewTrack:
    """Test small wrappers"""

    def test_page_from_api(self):
        """Test Page reads the paging object fields"""
        page = Page.from_spotify_api({"items": [1, 2], "total": 10, "limit": 2, "offset": 4, "next": None})

        assert page.items == (1, 2)
        assert page.total == 10
        assert page.offset == 4
        assert page.next is None

    def test_new_track_properties(self):
        """Test NewTrack exposes the track fields used by front ends"""
        new_track = NewTrack(
            track={"id": "t1", "name": "Song", "uri": "spotify:track:t1", "duration_ms": 1000,
                   "artists": [{"name": "A"}, {"name": "B"}]},
            album=album("al1", "2020"),
        )

        assert new_track.id == "t1"
        assert new_track.uri == "spotify:track:t1"
        assert new_track.artist_names == ("A", "B")
