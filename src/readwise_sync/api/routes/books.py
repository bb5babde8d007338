"""Read-only routes over imported books and highlights."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from readwise_sync.db.engine import get_session
from readwise_sync.models.highlight import Book, Highlight

router = APIRouter()


@router.get("/", response_model=List[Book])
def list_books(
    limit: int = 50,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    """Return imported books, most recently synced first."""
    return session.exec(
        select(Book).order_by(Book.synced_at.desc()).offset(offset).limit(limit)
    ).all()


@router.get("/{book_id}/highlights", response_model=List[Highlight])
def list_highlights(book_id: int, session: Session = Depends(get_session)):
    """Return a book's highlights in reading order."""
    book = session.get(Book, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return session.exec(
        select(Highlight)
        .where(Highlight.book_id == book_id)
        .order_by(Highlight.location, Highlight.id)
    ).all()
