"""Readwise data models: books and their highlights.

The ``readwise_*_id`` columns are hidden external identifiers. They are never
shown to the user; the importer matches on them so re-importing an overlapping
export window updates rows instead of duplicating them.
"""
from datetime import datetime, timezone
from typing import List, Optional

from sqlmodel import Field, Relationship, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Book(SQLModel, table=True):
    """One row per Readwise book (article, tweet thread, podcast, ...)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    readwise_book_id: str = Field(unique=True, index=True)
    title: str
    author: Optional[str] = None
    category: Optional[str] = None  # "books", "articles", "tweets", "podcasts"
    source: Optional[str] = None  # "kindle", "instapaper", "reader", ...
    cover_image_url: Optional[str] = None
    readwise_url: Optional[str] = None
    source_url: Optional[str] = None
    tags: Optional[str] = None  # comma-separated tag names
    document_note: Optional[str] = None

    synced_at: datetime = Field(default_factory=_utcnow)

    highlights: List["Highlight"] = Relationship(back_populates="book")


class Highlight(SQLModel, table=True):
    """One row per Readwise highlight."""

    id: Optional[int] = Field(default=None, primary_key=True)
    readwise_highlight_id: str = Field(unique=True, index=True)
    book_id: int = Field(foreign_key="book.id", index=True)
    text: str
    note: Optional[str] = None
    location: Optional[int] = None
    location_type: Optional[str] = None  # "page", "order", "offset", "time_offset"
    color: Optional[str] = None
    tags: Optional[str] = None
    highlighted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    readwise_url: Optional[str] = None

    synced_at: datetime = Field(default_factory=_utcnow)

    book: Optional[Book] = Relationship(back_populates="highlights")
