"""Persistence operations used by the ingestion pipeline and the API.

Every function takes an open ``AsyncSession``, commits its own writes, and
raises :class:`~gator.core.errors.StoreError` (never a raw SQLAlchemy error).
"""
from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from sqlalchemy import delete, desc, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gator.core.db import store_errors
from gator.models import Feed, FeedFollow, Post, User
from gator.models.feed import utc_now

async def _commit_new(session: AsyncSession, conflict: str) -> None:
    with store_errors(conflict=conflict):
        try:
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise

# --- feeds used by the ingestion cycle ---

async def next_feed_to_fetch(session: AsyncSession) -> Optional[Feed]:
    """Least recently fetched feed; never-fetched feeds come first."""
    q = (
        select(Feed)
        .order_by(Feed.last_fetched_at.asc().nulls_first(), Feed.created_at.asc())
        .limit(1)
    )
    with store_errors():
        return (await session.execute(q)).scalars().first()

async def mark_feed_fetched(session: AsyncSession, feed_id: uuid.UUID, now: dt.datetime | None = None) -> None:
    now = now or utc_now()
    with store_errors():
        await session.execute(
            update(Feed).where(Feed.id == feed_id).values(last_fetched_at=now, updated_at=now)
        )
        await session.commit()

async def insert_post_if_absent(
    session: AsyncSession,
    title: str,
    url: str,
    description: Optional[str],
    published_at: Optional[dt.datetime],
    feed_id: uuid.UUID,
) -> Optional[Post]:
    """Insert a post; return None when a post with ``url`` already exists."""
    now = utc_now()
    stmt = (
        sqlite_insert(Post.__table__)
        .values(
            id=uuid.uuid4(),
            title=title,
            url=url,
            description=description,
            published_at=published_at,
            feed_id=feed_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["url"])
    )
    with store_errors():
        res = await session.execute(stmt)
        await session.commit()
        if res.rowcount == 0:
            return None
        return (await session.execute(select(Post).where(Post.url == url))).scalars().one()

# --- users ---

async def create_user(session: AsyncSession, name: str) -> User:
    user = User(name=name)
    session.add(user)
    await _commit_new(session, f"User '{name}' already exists")
    return user

async def get_user(session: AsyncSession, name: str) -> Optional[User]:
    with store_errors():
        return (await session.execute(select(User).where(User.name == name))).scalars().first()

async def list_users(session: AsyncSession) -> list[User]:
    with store_errors():
        return list((await session.execute(select(User).order_by(User.created_at.asc()))).scalars().all())

async def delete_all_users(session: AsyncSession) -> int:
    """Delete every user; feeds, follows and posts go with them by cascade."""
    with store_errors():
        res = await session.execute(delete(User))
        await session.commit()
    return res.rowcount

# --- feeds and follows ---

async def create_feed(session: AsyncSession, name: str, url: str, user_id: uuid.UUID) -> Feed:
    feed = Feed(name=name, url=url, user_id=user_id)
    session.add(feed)
    await _commit_new(session, f"Feed '{url}' already exists")
    return feed

async def get_feed_by_url(session: AsyncSession, url: str) -> Optional[Feed]:
    with store_errors():
        return (await session.execute(select(Feed).where(Feed.url == url))).scalars().first()

async def list_feeds(session: AsyncSession) -> list[tuple[Feed, str]]:
    """Every feed with the name of the user who added it."""
    q = select(Feed, User.name).join(User, Feed.user_id == User.id).order_by(Feed.created_at.asc())
    with store_errors():
        return [(feed, user_name) for feed, user_name in (await session.execute(q)).all()]

async def create_feed_follow(session: AsyncSession, user_id: uuid.UUID, feed_id: uuid.UUID) -> FeedFollow:
    follow = FeedFollow(user_id=user_id, feed_id=feed_id)
    session.add(follow)
    await _commit_new(session, "Feed is already followed")
    return follow

async def list_follows_for_user(session: AsyncSession, user_id: uuid.UUID) -> list[Feed]:
    q = (
        select(Feed)
        .join(FeedFollow, FeedFollow.feed_id == Feed.id)
        .where(FeedFollow.user_id == user_id)
        .order_by(FeedFollow.created_at.asc())
    )
    with store_errors():
        return list((await session.execute(q)).scalars().all())

async def delete_feed_follow(session: AsyncSession, user_id: uuid.UUID, feed_id: uuid.UUID) -> bool:
    with store_errors():
        res = await session.execute(
            delete(FeedFollow).where(FeedFollow.user_id == user_id, FeedFollow.feed_id == feed_id)
        )
        await session.commit()
    return res.rowcount > 0

# --- posts ---

async def get_posts_for_user(session: AsyncSession, user_id: uuid.UUID, limit: int = 2) -> list[tuple[Post, str]]:
    """Newest posts from the feeds ``user_id`` follows, with each post's feed name."""
    q = (
        select(Post, Feed.name)
        .join(Feed, Post.feed_id == Feed.id)
        .join(FeedFollow, FeedFollow.feed_id == Feed.id)
        .where(FeedFollow.user_id == user_id)
        .order_by(desc(Post.published_at).nulls_last(), desc(Post.created_at))
        .limit(limit)
    )
    with store_errors():
        return [(post, feed_name) for post, feed_name in (await session.execute(q)).all()]
