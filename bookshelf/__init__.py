"""Bookshelf - book inventory API.

- Users register and log in; login sets a signed JWT in the `token` cookie.
- The `/books` route group only answers requests carrying a valid token.
- `/chat` relays a single message to the Gemini generateContent endpoint.

Run with `python scripts/run_api.py`; settings come from the environment
(see bookshelf.config).
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
