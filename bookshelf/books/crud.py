from __future__ import annotations

from typing import Any, Dict, List

from bookshelf.db import DocumentStore


BOOK_FIELDS = ("title", "author")


def public_book(doc: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(doc.get("id") or ""),
        "title": doc.get("title") or "",
        "author": doc.get("author") or "",
    }


def create_book(store: DocumentStore, *, title: str, author: str) -> str:
    return store.books.insert_one({"title": title, "author": author})


def list_books(store: DocumentStore) -> List[Dict[str, Any]]:
    """All books in store-native order (no paging, filtering or sort)."""
    return [public_book(d) for d in store.books.find_all()]


def update_book(store: DocumentStore, book_id: str, fields: Dict[str, Any]) -> int:
    """Merge-patch a book: only keys present in `fields` are overwritten.

    Returns the matched count. An unknown id matches nothing and is not an
    error; callers treat it as an idempotent no-op.
    """
    patch = {k: v for k, v in fields.items() if k in BOOK_FIELDS}
    return store.books.update_one(book_id, patch)


def delete_book(store: DocumentStore, book_id: str) -> int:
    return store.books.delete_one(book_id)
