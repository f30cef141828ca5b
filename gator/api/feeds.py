from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from gator.core.db import get_db
from gator.core.errors import AlreadyExistsError
from gator.core.security import current_user
from gator.models import Feed, User
from gator.services import store

router = APIRouter(prefix="/v1", tags=["feeds"])

_http_url = TypeAdapter(HttpUrl)

class FeedCreate(BaseModel):
    name: str = Field(min_length=1)
    url: str

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        # validate only; follow/unfollow look feeds up by the exact string stored
        try:
            _http_url.validate_python(v)
        except ValidationError:
            raise ValueError("must be an http(s) URL") from None
        return v

class FollowCreate(BaseModel):
    url: str

def feed_out(f: Feed) -> dict:
    return {
        "id": str(f.id),
        "name": f.name,
        "url": f.url,
        "created_at": f.created_at.isoformat() if f.created_at else None,
        "updated_at": f.updated_at.isoformat() if f.updated_at else None,
        "last_fetched_at": f.last_fetched_at.isoformat() if f.last_fetched_at else None,
    }

async def _feed_or_404(session: AsyncSession, url: str) -> Feed:
    feed = await store.get_feed_by_url(session, url)
    if feed is None:
        raise HTTPException(status_code=404, detail=f"Feed with URL '{url}' not found")
    return feed

@router.get("/feeds")
async def list_feeds(session: AsyncSession = Depends(get_db)):
    return [{**feed_out(f), "user": user_name} for f, user_name in await store.list_feeds(session)]

@router.post("/feeds", status_code=201)
async def add_feed(
    payload: FeedCreate,
    user: User = Depends(current_user),
    session: AsyncSession = Depends(get_db),
):
    try:
        feed = await store.create_feed(session, payload.name, payload.url, user.id)
    except AlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    # whoever adds a feed follows it
    await store.create_feed_follow(session, user.id, feed.id)
    return {**feed_out(feed), "user": user.name}

@router.post("/follows", status_code=201)
async def follow(
    payload: FollowCreate,
    user: User = Depends(current_user),
    session: AsyncSession = Depends(get_db),
):
    feed = await _feed_or_404(session, payload.url)
    try:
        await store.create_feed_follow(session, user.id, feed.id)
    except AlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"user": user.name, "feed": feed.name}

@router.get("/follows")
async def following(user: User = Depends(current_user), session: AsyncSession = Depends(get_db)):
    return [feed_out(f) for f in await store.list_follows_for_user(session, user.id)]

@router.delete("/follows")
async def unfollow(
    url: str = Query(...),
    user: User = Depends(current_user),
    session: AsyncSession = Depends(get_db),
):
    feed = await _feed_or_404(session, url)
    if not await store.delete_feed_follow(session, user.id, feed.id):
        raise HTTPException(status_code=404, detail=f"'{user.name}' does not follow '{feed.name}'")
    return {"ok": True}

@router.get("/posts")
async def browse(
    limit: int = Query(default=2, ge=1, le=100),
    user: User = Depends(current_user),
    session: AsyncSession = Depends(get_db),
):
    rows = await store.get_posts_for_user(session, user.id, limit=limit)
    return [
        {
            "id": str(p.id),
            "title": p.title,
            "url": p.url,
            "description": p.description,
            "published_at": p.published_at.isoformat() if p.published_at else None,
            "feed": feed_name,
        }
        for p, feed_name in rows
    ]
