"""
Readwise export response normalizer.

Converts raw book/highlight dicts from the export API into clean field dicts
that map directly onto SQLModel columns. No DB access here; the importer
handles persistence.

Export book shape (abridged):

    {
        "user_book_id": 123, "title": "...", "author": "...",
        "category": "books", "source": "kindle",
        "cover_image_url": "...", "readwise_url": "...", "source_url": null,
        "book_tags": [{"id": 1, "name": "philosophy"}],
        "document_note": null,
        "highlights": [
            {"id": 456, "text": "...", "note": "", "location": 12,
             "location_type": "page", "color": "yellow",
             "highlighted_at": "2024-05-01T10:00:00Z",
             "updated_at": "2024-05-02T10:00:00Z",
             "tags": [{"id": 2, "name": "favorite"}],
             "is_deleted": false, "readwise_url": "..."}
        ]
    }
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp ("Z" or offset suffix). Returns None if missing or bad."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _tag_names(tags: Any) -> Optional[str]:
    """Flatten [{"name": ...}] (or a list of strings) into "a,b,c"."""
    if not tags:
        return None
    names: List[str] = []
    for tag in tags:
        name = tag.get("name") if isinstance(tag, dict) else tag
        if name:
            names.append(str(name).strip())
    return ",".join(names) or None


def _none_if_blank(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    return value if value.strip() else None


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_book(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an export book dict into Book model fields.

    Args:
        raw: One item from the export API's ``results`` list.

    Returns:
        Dict with keys matching Book columns (highlights excluded).

    Raises:
        KeyError: if ``user_book_id`` is missing.
    """
    return {
        "readwise_book_id": str(raw["user_book_id"]),
        "title": raw.get("readable_title") or raw.get("title") or "Untitled",
        "author": _none_if_blank(raw.get("author")),
        "category": raw.get("category"),
        "source": raw.get("source"),
        "cover_image_url": _none_if_blank(raw.get("cover_image_url")),
        "readwise_url": _none_if_blank(raw.get("readwise_url")),
        "source_url": _none_if_blank(raw.get("source_url")),
        "tags": _tag_names(raw.get("book_tags")),
        "document_note": _none_if_blank(raw.get("document_note")),
    }


def normalize_highlight(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize an export highlight dict into Highlight model fields (minus book_id)."""
    return {
        "readwise_highlight_id": str(raw["id"]),
        "text": raw.get("text") or "",
        "note": _none_if_blank(raw.get("note")),
        "location": _int_or_none(raw.get("location")),
        "location_type": raw.get("location_type"),
        "color": _none_if_blank(raw.get("color")),
        "tags": _tag_names(raw.get("tags")),
        "highlighted_at": _parse_datetime(raw.get("highlighted_at")),
        "updated_at": _parse_datetime(raw.get("updated_at")),
        "readwise_url": _none_if_blank(raw.get("readwise_url")),
    }


def is_deleted(raw_highlight: Dict[str, Any]) -> bool:
    """True when the export marks a highlight as deleted in Readwise."""
    return bool(raw_highlight.get("is_deleted"))
