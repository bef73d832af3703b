"""Authentication module.

Provides JWT-based operator authentication for dashboard and admin routes.
"""

from concierge_api.auth.jwt import (
    create_access_token,
    decode_token,
    require_admin,
    require_operator,
)

__all__ = [
    "create_access_token",
    "decode_token",
    "require_admin",
    "require_operator",
]
