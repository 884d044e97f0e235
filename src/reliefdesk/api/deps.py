"""
Request dependencies: database session and acting user.
"""

from __future__ import annotations

from typing import Generator

from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import Session

from reliefdesk.persistence.db import get_session


def get_db(request: Request) -> Generator[Session, None, None]:
    """One session per request, committed when the handler succeeds."""
    with get_session(request.app.state.session_factory) as session:
        yield session


def require_actor(x_user_id: str | None = Header(default=None, alias="X-User-Id")) -> int:
    """Id of the user performing a mutating request.

    Authentication happens upstream; this only insists that the caller
    says who is acting.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return int(x_user_id.strip())
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header") from None
