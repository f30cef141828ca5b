from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from gator.core.db import get_db
from gator.core.errors import AlreadyExistsError
from gator.models import User
from gator.services import store

router = APIRouter(prefix="/v1/users", tags=["users"])

class UserCreate(BaseModel):
    name: str = Field(min_length=1)

def user_out(u: User) -> dict:
    return {
        "id": str(u.id),
        "name": u.name,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }

@router.post("", status_code=201)
async def register(payload: UserCreate, session: AsyncSession = Depends(get_db)):
    try:
        user = await store.create_user(session, payload.name)
    except AlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return user_out(user)

@router.get("")
async def list_users(
    x_user: Optional[str] = Header(default=None, alias="X-User"),
    session: AsyncSession = Depends(get_db),
):
    users = await store.list_users(session)
    return [{**user_out(u), "current": u.name == x_user} for u in users]
