"""
Sample data classes: a small record collection.

Albums belong to an artist and optionally a genre; tracks belong to an
album. Loaded by the test sites through ``class = _support.music.Album``
lines.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitefactory.core.orm import ManagedBase, ManagedRecord


class Album(ManagedBase, ManagedRecord):
    __tablename__ = "albums"
    moniker = "album"
    class_title = "Album"
    class_description = "A record, in whatever format"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str]
    year: Mapped[int | None]
    artist_id: Mapped[int | None] = mapped_column(ForeignKey("artists.id"))
    genre_id: Mapped[int | None] = mapped_column(ForeignKey("genres.id"))

    artist: Mapped[Artist | None] = relationship(back_populates="albums")
    genre: Mapped[Genre | None] = relationship(back_populates="albums")
    tracks: Mapped[list[Track]] = relationship(back_populates="album", cascade="all, delete-orphan")


class Artist(ManagedBase, ManagedRecord):
    __tablename__ = "artists"
    moniker = "artist"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str]

    albums: Mapped[list[Album]] = relationship(back_populates="artist")


class Genre(ManagedBase, ManagedRecord):
    __tablename__ = "genres"
    moniker = "genre"
    class_plural = "Genres of music"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str]

    albums: Mapped[list[Album]] = relationship(back_populates="genre")


class Track(ManagedBase, ManagedRecord):
    __tablename__ = "tracks"
    moniker = "track"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str]
    position: Mapped[int] = mapped_column(default=1)
    album_id: Mapped[int] = mapped_column(ForeignKey("albums.id"))

    album: Mapped[Album] = relationship(back_populates="tracks")


class Compilation(ManagedBase, ManagedRecord):
    """Claims the ``album`` moniker, which Album already holds."""

    __tablename__ = "compilations"
    moniker = "album"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str]


class NotManaged:
    """Importable, but not a managed record class."""
