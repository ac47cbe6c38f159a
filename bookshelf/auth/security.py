from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from bookshelf.util.time import utcnow


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Tokens are issued as HS256; any HMAC variant signed with the secret verifies.
_JWT_ALG = "HS256"
_ACCEPTED_ALGS = ["HS256", "HS384", "HS512"]


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, stored_hash: str) -> bool:
    """Check a login attempt against a stored hash; malformed hashes never match."""
    if not (password and stored_hash):
        return False
    try:
        return bool(_pwd.verify(password, stored_hash))
    except (ValueError, TypeError):
        return False


def create_access_token(*, secret: str, username: str, expires_minutes: int) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")

    now = utcnow()
    exp = now + timedelta(minutes=max(1, int(expires_minutes)))

    payload: Dict[str, Any] = {
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature, algorithm and expiry; return the claims.

    Only the HMAC family is accepted. A token whose header names "none" or an
    asymmetric algorithm fails with jwt.InvalidAlgorithmError before the
    signature is looked at.
    """
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("jwt_secret_blank")
    return jwt.decode(
        token,
        secret,
        algorithms=_ACCEPTED_ALGS,
        options={"require": ["exp"]},
    )
