"""Public profiles and profile editing.

Note: Router is not exported here to avoid circular imports.
Import directly from blog.users.router when needed.
"""

from .service import UserService


__all__ = ["UserService"]
