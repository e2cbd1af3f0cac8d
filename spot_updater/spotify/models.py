"""
Data models for Spotify entities.

This module defines immutable dataclasses for the parts of the Spotify Web
API responses the updater reasons about. Cached tracks and playlist bodies
are kept as the raw JSON dictionaries Spotify returned; these models wrap
the values that need typed behavior.

Models:
    Page        - One page of a paginated endpoint
    ReleaseDate - Partial-precision release date (year, month?, day?)
    Album       - Full album object with parsed release date
    NewTrack    - A catalog track paired with the album it came from

Release dates:
    Spotify reports album release dates with a precision of "year",
    "month" or "day" ("2020", "2020-03", "2020-03-15"). ReleaseDate keeps
    the missing parts as None instead of guessing them, and compares
    component by component.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


ALBUM_TYPE_SINGLE = "single"


@dataclass(frozen=True)
class Page:
    """
    One page of a Spotify paging object.

    Attributes:
        items: Items on this page, in remote order.
        total: Remote-reported size of the whole collection.
        limit: Page size requested.
        offset: Offset of the first item.
        next: URL of the next page, or None on the last page.
    """
    items: tuple[Any, ...]
    total: int
    limit: int = 0
    offset: int = 0
    next: str | None = None

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Page":
        return cls(
            items=tuple(data.get("items") or ()),
            total=int(data.get("total") or 0),
            limit=int(data.get("limit") or 0),
            offset=int(data.get("offset") or 0),
            next=data.get("next"),
        )


@dataclass(frozen=True)
class ReleaseDate:
    """
    A release date known to year, month or day precision.

    Attributes:
        year: Four-digit year, always present.
        month: 1-12, or None for year precision.
        day: 1-31, or None for year/month precision. Never set without month.

    Ordering:
        Components are compared in turn; a missing component sorts before
        any present one ("2020" < "2020-01" < "2020-01-01").
    """
    year: int
    month: int | None = None
    day: int | None = None

    @classmethod
    def parse(cls, value: str | None) -> "ReleaseDate | None":
        """
        Parse "YYYY", "YYYY-MM" or "YYYY-MM-DD".

        Returns:
            ReleaseDate, or None when the value is empty or malformed
            (local tracks carry no release date at all).
        """
        if not value:
            return None
        parts = value.strip().split("-")
        try:
            numbers = [int(part) for part in parts[:3]]
        except ValueError:
            return None

        year = numbers[0]
        month = numbers[1] if len(numbers) > 1 else None
        day = numbers[2] if len(numbers) > 2 else None
        # Spotify reports unknown months/days of old releases as "00"
        if month is not None and not 1 <= month <= 12:
            month, day = None, None
        if day is not None and not 1 <= day <= 31:
            day = None
        return cls(year=year, month=month, day=day)

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (
            self.year,
            self.month if self.month is not None else -1,
            self.day if self.day is not None else -1,
        )

    def compare(self, other: "ReleaseDate") -> int:
        """Three-way comparison: negative, zero or positive."""
        a, b = self.sort_key, other.sort_key
        return (a > b) - (a < b)

    def is_after(self, moment: datetime) -> bool:
        """
        Whether this release is newer than `moment`, at this date's precision.

        Components are compared against the moment's calendar date (UTC)
        one at a time; the first that differs decides. When every component
        this date has is equal to the moment's, the release counts as newer:
        missing or tied precision errs toward inclusion.

        Example:
            watermark = datetime(2020, 3, 10, tzinfo=timezone.utc)
            ReleaseDate(2021).is_after(watermark)        # True
            ReleaseDate(2020).is_after(watermark)        # True (year ties)
            ReleaseDate(2020, 2).is_after(watermark)     # False
            ReleaseDate(2020, 3, 9).is_after(watermark)  # False
        """
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)

        if self.year != moment.year:
            return self.year > moment.year
        if self.month is None:
            return True
        if self.month != moment.month:
            return self.month > moment.month
        if self.day is None:
            return True
        return self.day >= moment.day

    def start(self) -> datetime:
        """First instant (UTC) of the period this date covers."""
        return datetime(self.year, self.month or 1, self.day or 1, tzinfo=timezone.utc)

    def __str__(self) -> str:
        if self.month is None:
            return f"{self.year:04d}"
        if self.day is None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"


@dataclass(frozen=True)
class Album:
    """
    Full Spotify album object.

    Attributes:
        id: Spotify album ID.
        name: Album title.
        album_type: "album", "single" or "compilation".
        release_date: Parsed release date, None if Spotify sent none.
        tracks: First page of the album's track listing.
        uri: Spotify URI.
        images: Cover images, largest first as Spotify returns them.
    """
    id: str
    name: str
    album_type: str
    release_date: ReleaseDate | None
    tracks: Page
    uri: str = ""
    images: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "Album":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            album_type=data.get("album_type", ""),
            release_date=ReleaseDate.parse(data.get("release_date")),
            tracks=Page.from_spotify_api(data.get("tracks") or {}),
            uri=data.get("uri", ""),
            images=tuple(data.get("images") or ()),
        )

    @property
    def is_single(self) -> bool:
        return self.album_type == ALBUM_TYPE_SINGLE

    @property
    def release_sort_key(self) -> tuple[tuple[int, int, int], int]:
        """
        Sort key: release date, then singles before other album types.

        Albums without a release date sort first.
        """
        date_key = self.release_date.sort_key if self.release_date else (-1, -1, -1)
        return (date_key, 0 if self.is_single else 1)


@dataclass(frozen=True)
class NewTrack:
    """
    A track from the main artist's catalog that the playlist lacks.

    Attributes:
        track: Simplified track object from the album listing.
        album: The album the track was found on.
    """
    track: dict[str, Any]
    album: Album

    @property
    def id(self) -> str | None:
        return self.track.get("id")

    @property
    def uri(self) -> str:
        return self.track.get("uri", "")

    @property
    def name(self) -> str:
        return self.track.get("name", "")

    @property
    def duration_ms(self) -> int:
        return int(self.track.get("duration_ms") or 0)

    @property
    def artist_names(self) -> tuple[str, ...]:
        return tuple(a.get("name", "") for a in self.track.get("artists", []))
