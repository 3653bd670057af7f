"""HTTP Basic authentication against the app_users table."""

from .security import (
    Operator,
    authenticate,
    get_current_operator,
    hash_password,
    require_admin,
    verify_password,
)

__all__ = [
    "Operator",
    "authenticate",
    "get_current_operator",
    "hash_password",
    "require_admin",
    "verify_password",
]
