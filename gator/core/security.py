from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from gator.core.config import settings
from gator.core.db import get_db
from gator.core.errors import AuthError
from gator.models import User
from gator.services import store

def require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    if not settings.admin_token or not x_admin_token or x_admin_token != settings.admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")

async def resolve_user(session: AsyncSession, name: Optional[str]) -> User:
    """Look up the current user by name, failing with AuthError before anything else runs."""
    if not name:
        raise AuthError("No user logged in. Please login first.")
    user = await store.get_user(session, name)
    if user is None:
        raise AuthError(f"User '{name}' not found in database.")
    return user

async def current_user(
    x_user: str | None = Header(default=None, alias="X-User"),
    session: AsyncSession = Depends(get_db),
) -> User:
    return await resolve_user(session, x_user)
