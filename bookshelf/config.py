import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# A .env file (searched upward from this package) fills in variables the real
# environment leaves unset; no file means no change.
load_dotenv()

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Read a yes/no flag; unset or unrecognised values give `default`."""
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Settings for the API, the document store and the chat passthrough.

    Every field is read from the environment when the module is imported.
    AUTH_JWT_SECRET signs session cookies and must be overridden outside dev.
    """

    # -----------------
    # Document store
    # -----------------
    # mongodb://... selects MongoDB; anything else is treated as a SQLite path.
    DB_DSN: str = (
        os.environ.get("BOOKSHELF_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("BOOKSHELF_DB_PATH", "./bookshelf.sqlite")
    )
    # Database namespace holding the `users` and `books` collections (MongoDB only).
    DB_NAME: str = os.environ.get("BOOKSHELF_DB_NAME", "echo_auth")

    # -----------------
    # Auth (JWT in a cookie)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "1440"))  # 24h

    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "token")
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "lax")  # lax|strict|none
    AUTH_COOKIE_SECURE: bool = _env_bool("AUTH_COOKIE_SECURE", False) is True

    # -----------------
    # Gemini (chat passthrough)
    # -----------------
    GEMINI_API_KEY: str | None = os.environ.get("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
    GEMINI_BASE_URL: str = os.environ.get(
        "GEMINI_BASE_URL",
        "https://generativelanguage.googleapis.com/v1beta",
    )
    GEMINI_TIMEOUT_SECONDS: int = int(os.environ.get("GEMINI_TIMEOUT_SECONDS", "60"))


def load_config() -> Config:
    return Config()
