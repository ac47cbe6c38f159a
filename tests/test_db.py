from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

from bookshelf.db import DocumentStore, MongoCollection, StoreError, _detect_dialect, open_store


def test_detect_dialect() -> None:
    assert _detect_dialect("mongodb://localhost:27017") == "mongodb"
    assert _detect_dialect("mongodb+srv://cluster.example.net") == "mongodb"
    assert _detect_dialect("sqlite:///tmp/x.sqlite") == "sqlite"
    assert _detect_dialect("./bookshelf.sqlite") == "sqlite"
    assert _detect_dialect("") == "sqlite"


def test_insert_assigns_id_and_find_all_keeps_insertion_order(store: DocumentStore) -> None:
    first = store.books.insert_one({"title": "Dune", "author": "Herbert"})
    second = store.books.insert_one({"title": "Emma", "author": "Austen"})

    assert first and second and first != second
    docs = store.books.find_all()
    assert [d["id"] for d in docs] == [first, second]
    assert docs[0] == {"id": first, "title": "Dune", "author": "Herbert"}


def test_insert_ignores_caller_supplied_id(store: DocumentStore) -> None:
    new_id = store.books.insert_one({"id": "mine", "title": "Dune", "author": "Herbert"})

    assert new_id != "mine"
    assert store.books.find_one({"id": "mine"}) is None


def test_find_one_matches_on_every_field(store: DocumentStore) -> None:
    store.users.insert_one({"username": "alice", "password_hash": "h1"})
    store.users.insert_one({"username": "bob", "password_hash": "h2"})

    assert store.users.find_one({"username": "bob"})["password_hash"] == "h2"
    assert store.users.find_one({"username": "bob", "password_hash": "h1"}) is None
    assert store.users.find_one({"username": "carol"}) is None


def test_update_merges_fields(store: DocumentStore) -> None:
    book_id = store.books.insert_one({"title": "Dune", "author": "Herbert"})

    assert store.books.update_one(book_id, {"title": "Dune2"}) == 1
    assert store.books.find_one({"id": book_id}) == {"id": book_id, "title": "Dune2", "author": "Herbert"}


def test_update_and_delete_unknown_id_match_nothing(store: DocumentStore) -> None:
    assert store.books.update_one("missing", {"title": "x"}) == 0
    assert store.books.delete_one("missing") == 0


def test_delete_removes_document(store: DocumentStore) -> None:
    book_id = store.books.insert_one({"title": "Dune", "author": "Herbert"})

    assert store.books.delete_one(book_id) == 1
    assert store.books.find_all() == []


def test_collections_are_separate(store: DocumentStore) -> None:
    store.users.insert_one({"username": "alice"})

    assert store.books.find_all() == []
    assert len(store.collection("users").find_all()) == 1


def test_rejects_unsafe_filter_field(store: DocumentStore) -> None:
    with pytest.raises(StoreError):
        store.users.find_one({"username') OR 1=1 --": "x"})


def test_store_persists_across_reopen(tmp_path: Path) -> None:
    dsn = f"sqlite:///{tmp_path / 'nested' / 'data.sqlite'}"
    s = open_store(dsn)
    book_id = s.books.insert_one({"title": "Dune", "author": "Herbert"})
    s.close()

    reopened = open_store(dsn)
    try:
        assert reopened.books.find_one({"id": book_id})["title"] == "Dune"
    finally:
        reopened.close()


def test_closed_store_raises_store_error(tmp_path: Path) -> None:
    s = open_store(str(tmp_path / "closed.sqlite"))
    s.close()

    with pytest.raises(StoreError):
        s.books.insert_one({"title": "Dune", "author": "Herbert"})


def test_mongo_adapter_translates_ids() -> None:
    oid = ObjectId()
    coll = MagicMock()
    coll.name = "books"
    coll.insert_one.return_value = MagicMock(inserted_id=oid)
    coll.find.return_value = [{"_id": oid, "title": "Dune", "author": "Herbert"}]
    coll.update_one.return_value = MagicMock(matched_count=1)
    coll.delete_one.return_value = MagicMock(deleted_count=1)
    books = MongoCollection(coll)

    assert books.insert_one({"id": "ignored", "title": "Dune", "author": "Herbert"}) == str(oid)
    coll.insert_one.assert_called_once_with({"title": "Dune", "author": "Herbert"})
    assert books.find_all() == [{"id": str(oid), "title": "Dune", "author": "Herbert"}]
    assert books.update_one(str(oid), {"title": "Dune2"}) == 1
    coll.update_one.assert_called_once_with({"_id": oid}, {"$set": {"title": "Dune2"}})
    assert books.delete_one(str(oid)) == 1
    coll.delete_one.assert_called_once_with({"_id": oid})


def test_mongo_adapter_invalid_object_id_matches_nothing() -> None:
    coll = MagicMock()
    coll.name = "books"
    books = MongoCollection(coll)

    assert books.update_one("not-an-object-id", {"title": "x"}) == 0
    assert books.delete_one("not-an-object-id") == 0
    assert books.find_one({"id": "not-an-object-id"}) is None
    coll.update_one.assert_not_called()
    coll.delete_one.assert_not_called()


def test_mongo_adapter_wraps_driver_errors() -> None:
    coll = MagicMock()
    coll.name = "users"
    coll.find_one.side_effect = PyMongoError("server selection timeout")
    users = MongoCollection(coll)

    with pytest.raises(StoreError):
        users.find_one({"username": "alice"})
