from __future__ import annotations

import base64
import json
from collections.abc import Callable, Iterator
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from bookshelf.api.server import create_app
from bookshelf.config import Config
from bookshelf.db import DocumentStore, open_store

SECRET = "test-signing-secret-0123456789abcdef0123456789abcdef0123456789abcdef"


@pytest.fixture()
def cfg(tmp_path: Path) -> Config:
    return replace(
        Config(),
        DB_DSN=str(tmp_path / "bookshelf.sqlite"),
        AUTH_JWT_SECRET=SECRET,
        AUTH_TOKEN_EXPIRE_MINUTES=1440,
        AUTH_COOKIE_NAME="token",
        AUTH_COOKIE_SAMESITE="lax",
        AUTH_COOKIE_SECURE=False,
        GEMINI_API_KEY="test-key",
        GEMINI_MODEL="gemini-1.5-flash",
        GEMINI_BASE_URL="https://generativelanguage.googleapis.com/v1beta",
    )


@pytest.fixture()
def store(cfg: Config) -> Iterator[DocumentStore]:
    s = open_store(cfg.DB_DSN)
    yield s
    s.close()


@pytest.fixture()
def client(cfg: Config, store: DocumentStore) -> Iterator[TestClient]:
    with TestClient(create_app(cfg, store)) as c:
        yield c


@pytest.fixture()
def logged_in(client: TestClient) -> TestClient:
    client.post("/register", json={"username": "alice", "password": "secret123"})
    response = client.post("/login", json={"username": "alice", "password": "secret123"})
    assert response.status_code == 200
    return client


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@pytest.fixture()
def forge_rs256_token() -> Callable[[dict[str, Any]], str]:
    """Build a token whose header claims RS256, with a junk signature."""

    def forge(claims: dict[str, Any]) -> str:
        header = _b64(json.dumps({"alg": "RS256", "typ": "JWT"}).encode())
        body = _b64(json.dumps(claims).encode())
        signature = _b64(b"junk-signature")
        return f"{header}.{body}.{signature}"

    return forge
