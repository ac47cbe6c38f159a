"""Authentication helpers.

Auth is deliberately lightweight:

- Users collection (username + salted password hash)
- Stateless JWT session tokens carried in an httpOnly cookie

There is no server-side session state, so logging out only clears the
cookie; a copied token stays valid until it expires.
"""

from .crud import create_user, verify_user_credentials
from .deps import get_store, require_token

__all__ = [
    "create_user",
    "get_store",
    "require_token",
    "verify_user_credentials",
]
