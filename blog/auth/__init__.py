"""Authentication module.

Users, password hashing, access tokens and the register/login/me routes.

Note: Router is not exported here to avoid circular imports.
Import directly from blog.auth.router when needed.
"""

from .models import AUTH_TABLES_CQL, User
from .service import AuthService


__all__ = ["AUTH_TABLES_CQL", "AuthService", "User"]
