from __future__ import annotations

import json
import re
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bson import ObjectId
from pymongo import MongoClient
from pymongo.errors import PyMongoError


USERS = "users"
BOOKS = "books"
COLLECTIONS = (USERS, BOOKS)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


class StoreError(Exception):
    """Any failure of a document store round trip."""


def _detect_dialect(dsn: str) -> str:
    """Return 'mongodb' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("mongodb", "mongodb+srv"):
        return "mongodb"
    # Allow sqlite:///path style, but default is file path.
    return "sqlite"


def _check_field(name: str) -> str:
    if not _FIELD_RE.match(name or ""):
        raise StoreError(f"invalid field name: {name!r}")
    return name


# -----------------------------
# SQLite (JSON documents)
# -----------------------------


class SQLiteCollection:
    """A named collection of JSON documents inside one SQLite table.

    Rows keep insertion order (rowid), which is what `find_all` returns.
    """

    def __init__(self, conn: sqlite3.Connection, lock: threading.Lock, name: str):
        self._conn = conn
        self._lock = lock
        self.name = _check_field(name)

    def _create(self) -> None:
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {self.name} (id TEXT PRIMARY KEY, doc TEXT NOT NULL)"
        )

    @staticmethod
    def _row_to_doc(row: Any) -> Dict[str, Any]:
        d = json.loads(row["doc"])
        d["id"] = str(row["id"])
        return d

    def _where(self, filt: Optional[Dict[str, Any]]) -> tuple[str, List[Any]]:
        clauses: List[str] = []
        params: List[Any] = []
        for k, v in (filt or {}).items():
            if k == "id":
                clauses.append("id=?")
                params.append(str(v))
            else:
                clauses.append(f"json_extract(doc, '$.{_check_field(k)}')=?")
                params.append(v)
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def insert_one(self, doc: Dict[str, Any]) -> str:
        body = {k: v for k, v in doc.items() if k != "id"}
        new_id = uuid.uuid4().hex
        try:
            with self._lock:
                self._conn.execute(
                    f"INSERT INTO {self.name} (id, doc) VALUES (?, ?)",
                    (new_id, json.dumps(body)),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"insert into {self.name} failed: {e}") from e
        return new_id

    def find_one(self, filt: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._select(filt, limit=1)
        return rows[0] if rows else None

    def find_all(self, filt: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._select(filt)

    def _select(self, filt: Optional[Dict[str, Any]], limit: int | None = None) -> List[Dict[str, Any]]:
        where, params = self._where(filt)
        sql = f"SELECT id, doc FROM {self.name}{where} ORDER BY rowid"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        try:
            with self._lock:
                rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"select from {self.name} failed: {e}") from e
        return [self._row_to_doc(r) for r in rows]

    def update_one(self, doc_id: str, fields: Dict[str, Any]) -> int:
        """Merge `fields` into the document (like Mongo's $set). Returns matched count."""
        try:
            with self._lock:
                row = self._conn.execute(
                    f"SELECT doc FROM {self.name} WHERE id=?", (str(doc_id),)
                ).fetchone()
                if row is None:
                    return 0
                d = json.loads(row["doc"])
                d.update({k: v for k, v in fields.items() if k != "id"})
                self._conn.execute(
                    f"UPDATE {self.name} SET doc=? WHERE id=?",
                    (json.dumps(d), str(doc_id)),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"update of {self.name} failed: {e}") from e
        return 1

    def delete_one(self, doc_id: str) -> int:
        try:
            with self._lock:
                cur = self._conn.execute(f"DELETE FROM {self.name} WHERE id=?", (str(doc_id),))
                self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"delete from {self.name} failed: {e}") from e
        return int(cur.rowcount or 0)


# -----------------------------
# MongoDB
# -----------------------------


class MongoCollection:
    """Adapter that gives a pymongo collection the same surface as SQLiteCollection.

    Documents come back with `_id` renamed to a string `id`. Ids that are not
    valid ObjectIds match nothing.
    """

    def __init__(self, coll: Any):
        self._coll = coll
        self.name = coll.name

    @staticmethod
    def _to_doc(raw: Dict[str, Any]) -> Dict[str, Any]:
        d = dict(raw)
        d["id"] = str(d.pop("_id"))
        return d

    @staticmethod
    def _object_id(doc_id: str) -> Any:
        if not ObjectId.is_valid(str(doc_id)):
            return None
        return ObjectId(str(doc_id))

    def _query(self, filt: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        q: Dict[str, Any] = {}
        for k, v in (filt or {}).items():
            if k == "id":
                oid = self._object_id(v)
                if oid is None:
                    return None
                q["_id"] = oid
            else:
                q[k] = v
        return q

    def insert_one(self, doc: Dict[str, Any]) -> str:
        body = {k: v for k, v in doc.items() if k != "id"}
        try:
            res = self._coll.insert_one(body)
        except PyMongoError as e:
            raise StoreError(f"insert into {self.name} failed: {e}") from e
        return str(res.inserted_id)

    def find_one(self, filt: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        q = self._query(filt)
        if q is None:
            return None
        try:
            raw = self._coll.find_one(q)
        except PyMongoError as e:
            raise StoreError(f"find in {self.name} failed: {e}") from e
        return self._to_doc(raw) if raw is not None else None

    def find_all(self, filt: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        q = self._query(filt)
        if q is None:
            return []
        try:
            return [self._to_doc(d) for d in self._coll.find(q)]
        except PyMongoError as e:
            raise StoreError(f"find in {self.name} failed: {e}") from e

    def update_one(self, doc_id: str, fields: Dict[str, Any]) -> int:
        oid = self._object_id(doc_id)
        if oid is None:
            return 0
        body = {k: v for k, v in fields.items() if k != "id"}
        try:
            if not body:
                # $set with an empty document is rejected by the server.
                return int(self._coll.count_documents({"_id": oid}, limit=1))
            res = self._coll.update_one({"_id": oid}, {"$set": body})
        except PyMongoError as e:
            raise StoreError(f"update of {self.name} failed: {e}") from e
        return int(res.matched_count)

    def delete_one(self, doc_id: str) -> int:
        oid = self._object_id(doc_id)
        if oid is None:
            return 0
        try:
            res = self._coll.delete_one({"_id": oid})
        except PyMongoError as e:
            raise StoreError(f"delete from {self.name} failed: {e}") from e
        return int(res.deleted_count)


# -----------------------------
# Store
# -----------------------------


class DocumentStore:
    """The `users` and `books` collections plus the connection that backs them."""

    def __init__(self, dialect: str, collections: Dict[str, Any], closer: Any):
        self.dialect = dialect
        self._collections = collections
        self._closer = closer

    @property
    def users(self) -> Any:
        return self._collections[USERS]

    @property
    def books(self) -> Any:
        return self._collections[BOOKS]

    def collection(self, name: str) -> Any:
        return self._collections[name]

    def close(self) -> None:
        try:
            self._closer()
        except Exception as e:
            _debug(f"close failed: {e}")


def _open_sqlite(dsn: str) -> DocumentStore:
    path = dsn
    # Support sqlite:///path style
    if path.lower().startswith("sqlite:///"):
        path = path[len("sqlite:///") :]
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if path != ":memory:":
            conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    except sqlite3.Error as e:
        raise StoreError(f"cannot open sqlite store at {path}: {e}") from e

    lock = threading.Lock()
    collections = {name: SQLiteCollection(conn, lock, name) for name in COLLECTIONS}
    try:
        for c in collections.values():
            c._create()
        conn.commit()
    except sqlite3.Error as e:
        conn.close()
        raise StoreError(f"cannot create collections: {e}") from e
    return DocumentStore("sqlite", collections, conn.close)


def _open_mongodb(dsn: str, database: str) -> DocumentStore:
    client = MongoClient(dsn)
    db = client[database]
    collections = {name: MongoCollection(db[name]) for name in COLLECTIONS}
    return DocumentStore("mongodb", collections, client.close)


def open_store(db_dsn: str, database: str = "echo_auth") -> DocumentStore:
    """Open the document store selected by `db_dsn`.

    - mongodb:// or mongodb+srv:// : pymongo, collections live in `database`.
    - anything else: SQLite file (or :memory:) with one table per collection.
    """
    dsn = (db_dsn or "").strip()
    dialect = _detect_dialect(dsn)
    _debug(f"Opening store ({dialect}) at {dsn or ':memory:'}")
    if dialect == "mongodb":
        return _open_mongodb(dsn, database)
    return _open_sqlite(dsn or ":memory:")
