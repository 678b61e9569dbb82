"""Shared FastAPI dependencies for identity scoping."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException


@dataclass(frozen=True)
class RequestContext:
    """Identity of the caller, threaded explicitly into services."""

    user_id: int
    school_id: int


def get_context(
    x_user_id: Optional[str] = Header(None),
    x_school_id: Optional[str] = Header(None),
) -> RequestContext:
    """Build the request context from headers set by the identity provider."""
    try:
        return RequestContext(user_id=int(x_user_id), school_id=int(x_school_id))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Missing or invalid identity headers")
