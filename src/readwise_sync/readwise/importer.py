"""
Materializes Readwise export records into Book/Highlight rows.

Idempotency: books are matched on readwise_book_id and highlights on
readwise_highlight_id (both unique). Existing rows are updated in place, so
re-importing an overlapping export window never creates duplicates.
Highlights the export marks as deleted are removed locally.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlmodel import Session, select

from readwise_sync.models.highlight import Book, Highlight
from readwise_sync.readwise.normalizer import (
    is_deleted,
    normalize_book,
    normalize_highlight,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    books: int = 0
    highlights: int = 0
    deleted_highlights: int = 0


async def import_books_and_highlights(engine, books: List[Dict[str, Any]]) -> ImportResult:
    """
    Upsert every book in `books` and the highlights nested inside it.

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
        books: Book dicts as returned by ReadwiseClient.fetch_exports().

    Returns:
        Counts of books and highlights written.
    """
    result = ImportResult()
    with Session(engine) as s:
        for raw_book in books:
            book = _upsert_book(s, raw_book)
            result.books += 1
            for raw_highlight in raw_book.get("highlights") or []:
                if is_deleted(raw_highlight):
                    if _delete_highlight(s, raw_highlight):
                        result.deleted_highlights += 1
                    continue
                _upsert_highlight(s, book, raw_highlight)
                result.highlights += 1
        s.commit()

    logger.info(
        "Imported %d books, %d highlights (%d deleted)",
        result.books,
        result.highlights,
        result.deleted_highlights,
    )
    return result


# ─── Internal helpers ─────────────────────────────────────────────────────────

def _upsert_book(s: Session, raw: Dict[str, Any]) -> Book:
    fields = normalize_book(raw)
    book = s.exec(
        select(Book).where(Book.readwise_book_id == fields["readwise_book_id"])
    ).first()

    if book:
        for k, v in fields.items():
            setattr(book, k, v)
        book.synced_at = datetime.now(timezone.utc)
    else:
        book = Book(**fields)
    s.add(book)
    s.flush()  # assigns book.id for new rows
    return book


def _upsert_highlight(s: Session, book: Book, raw: Dict[str, Any]) -> Highlight:
    fields = normalize_highlight(raw)
    highlight = s.exec(
        select(Highlight).where(
            Highlight.readwise_highlight_id == fields["readwise_highlight_id"]
        )
    ).first()

    if highlight:
        for k, v in fields.items():
            setattr(highlight, k, v)
        highlight.book_id = book.id
        highlight.synced_at = datetime.now(timezone.utc)
    else:
        highlight = Highlight(book_id=book.id, **fields)
    s.add(highlight)
    return highlight


def _delete_highlight(s: Session, raw: Dict[str, Any]) -> bool:
    existing = s.exec(
        select(Highlight).where(Highlight.readwise_highlight_id == str(raw["id"]))
    ).first()
    if existing is None:
        return False
    s.delete(existing)
    return True
