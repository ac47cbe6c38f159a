from __future__ import annotations

from typing import Any, Dict

import jwt
from fastapi import HTTPException, Request

from bookshelf.db import DocumentStore

from .security import decode_access_token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


def get_store(request: Request) -> DocumentStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=500, detail="store not ready")
    return store


def require_token(request: Request) -> Dict[str, Any]:
    """Gate for protected route groups.

    Reads the session token from the auth cookie only. The request passes
    through untouched when the token verifies; the decoded claims are
    returned for handlers that want them.
    """

    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="server config missing")

    cookie_name = str(getattr(cfg, "AUTH_COOKIE_NAME", "token") or "token")
    token = request.cookies.get(cookie_name)
    if not token:
        raise _unauthorized("missing token")

    try:
        return decode_access_token(token=token, secret=cfg.AUTH_JWT_SECRET)
    except (jwt.InvalidTokenError, ValueError):
        # Bad signature, foreign algorithm, malformed or expired all look the same to clients.
        raise _unauthorized("invalid token")
