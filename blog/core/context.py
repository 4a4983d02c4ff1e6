"""Per-request logging context.

The middleware binds a request id and the auth dependency binds the user
id once the bearer token is decoded; ``add_context_processor`` in
``blog.core.logging`` copies both onto every event.
"""

import re
from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


# Caller-supplied ids are echoed in headers and logs, so only short
# token-like values are trusted.
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


def get_request_id() -> str:
    return request_id_var.get()


def set_request_id(incoming: str | None = None) -> str:
    """Bind the request id for the current task and return it.

    A well-formed incoming id (from ``X-Request-ID``) is reused; anything
    else is replaced by a fresh UUID.
    """
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        request_id = incoming
    else:
        request_id = str(uuid4())
    request_id_var.set(request_id)
    return request_id


def get_user_id() -> str | None:
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(None if user_id is None else str(user_id))


def get_context() -> dict[str, Any]:
    """Bound request_id/user_id, leaving out whichever is unset."""
    bound = {"request_id": get_request_id(), "user_id": get_user_id()}
    return {key: value for key, value in bound.items() if value}


def clear_context() -> None:
    request_id_var.set("")
    user_id_var.set(None)
