from __future__ import annotations

from typing import Any, Dict, List, Optional

from bookshelf.db import DocumentStore
from bookshelf.util.time import utcnow_iso

from .security import hash_password, verify_password


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    d.pop("password_hash", None)
    return d


def get_users_by_username(store: DocumentStore, username: str) -> List[Dict[str, Any]]:
    if not username:
        return []
    return store.users.find_all({"username": username})


def verify_user_credentials(store: DocumentStore, username: str, password: str) -> Optional[Dict[str, Any]]:
    # Usernames are not unique, so any record whose hash matches is accepted.
    for doc in get_users_by_username(store, username):
        if verify_password(password, str(doc.get("password_hash") or "")):
            return doc
    return None


def create_user(store: DocumentStore, *, username: str, password: str) -> Dict[str, Any]:
    """Insert a user record.

    There is no uniqueness check: registering an existing username adds a
    second record. Raises ValueError for a blank username/password and
    StoreError if the insert fails.
    """
    if not username:
        raise ValueError("username_blank")

    doc = {
        "username": username,
        "password_hash": hash_password(password),
        "created_at": utcnow_iso(),
    }
    doc["id"] = store.users.insert_one(doc)
    return public_user(doc)
