"""Caller identity.

Authentication happens upstream: the gateway verifies the caller and
forwards their user id in the ``X-User-Id`` header. A missing or blank
header means the request is unauthenticated; each operation decides when
to reject it so that its precondition order is preserved.
"""
from typing import Optional

from fastapi import Header

USER_ID_HEADER = "X-User-Id"


async def current_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
) -> Optional[str]:
    """FastAPI dependency returning the caller's user id, or None."""
    if x_user_id is None:
        return None
    x_user_id = x_user_id.strip()
    return x_user_id or None
