from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import func, select

from gator.core.errors import AlreadyExistsError
from gator.models import Feed, Post
from gator.services import store


async def _user_with_feeds(session, *urls):
    user = await store.create_user(session, "alice")
    feeds = [await store.create_feed(session, f"feed {i}", url, user.id) for i, url in enumerate(urls)]
    return user, feeds


async def test_next_feed_is_none_without_feeds(session):
    assert await store.next_feed_to_fetch(session) is None


async def test_never_fetched_feeds_come_first_regardless_of_insertion_order(session):
    _, (old, new_a, new_b) = await _user_with_feeds(
        session, "https://a.example/rss", "https://b.example/rss", "https://c.example/rss"
    )
    # the first-created feed is the only one ever fetched
    await store.mark_feed_fetched(session, old.id, now=dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=30))

    picked = await store.next_feed_to_fetch(session)
    assert picked.id in {new_a.id, new_b.id}

    await store.mark_feed_fetched(session, picked.id)
    second = await store.next_feed_to_fetch(session)
    assert second.id in {new_a.id, new_b.id} - {picked.id}

    await store.mark_feed_fetched(session, second.id)
    assert (await store.next_feed_to_fetch(session)).id == old.id


async def test_mark_feed_fetched_stamps_both_timestamps(session):
    _, (feed,) = await _user_with_feeds(session, "https://a.example/rss")
    when = dt.datetime(2026, 1, 10, 12, 0, tzinfo=dt.timezone.utc)

    await store.mark_feed_fetched(session, feed.id, now=when)

    row = (await session.execute(select(Feed.last_fetched_at, Feed.updated_at).where(Feed.id == feed.id))).one()
    assert row.last_fetched_at.replace(tzinfo=None) == when.replace(tzinfo=None)
    assert row.updated_at.replace(tzinfo=None) == when.replace(tzinfo=None)


async def test_insert_post_if_absent_is_idempotent(session):
    _, (feed,) = await _user_with_feeds(session, "https://a.example/rss")

    first = await store.insert_post_if_absent(session, "Hello", "https://a.example/1", None, None, feed.id)
    again = await store.insert_post_if_absent(session, "Hello again", "https://a.example/1", "d", None, feed.id)

    assert first is not None and first.title == "Hello"
    assert again is None
    count = (await session.execute(select(func.count()).select_from(Post).where(Post.url == "https://a.example/1"))).scalar_one()
    assert count == 1


async def test_duplicate_user_and_feed_url_are_conflicts(session):
    user, _ = await _user_with_feeds(session, "https://a.example/rss")
    # a failed commit rolls back and expires loaded objects
    user_id = user.id

    with pytest.raises(AlreadyExistsError):
        await store.create_user(session, "alice")
    with pytest.raises(AlreadyExistsError):
        await store.create_feed(session, "copy", "https://a.example/rss", user_id)
    # the session is still usable after a conflict
    assert [u.name for u in await store.list_users(session)] == ["alice"]


async def test_follows_and_posts_for_user(session):
    alice, (a, b) = await _user_with_feeds(session, "https://a.example/rss", "https://b.example/rss")
    bob = await store.create_user(session, "bob")
    await store.create_feed_follow(session, bob.id, a.id)

    base = dt.datetime(2026, 1, 1, tzinfo=dt.timezone.utc)
    for i in range(3):
        await store.insert_post_if_absent(session, f"a{i}", f"https://a.example/{i}", None, base + dt.timedelta(days=i), a.id)
    await store.insert_post_if_absent(session, "b0", "https://b.example/0", None, base + dt.timedelta(days=9), b.id)

    rows = await store.get_posts_for_user(session, bob.id, limit=10)
    assert [p.title for p, _ in rows] == ["a2", "a1", "a0"]
    assert {name for _, name in rows} == {"feed 0"}

    assert [p.title for p, _ in await store.get_posts_for_user(session, bob.id)] == ["a2", "a1"]

    assert [f.id for f in await store.list_follows_for_user(session, bob.id)] == [a.id]
    assert await store.delete_feed_follow(session, bob.id, a.id) is True
    assert await store.delete_feed_follow(session, bob.id, a.id) is False
    assert await store.get_posts_for_user(session, bob.id) == []


async def test_list_feeds_includes_creator_name(session):
    await _user_with_feeds(session, "https://a.example/rss")
    [(feed, user_name)] = await store.list_feeds(session)
    assert feed.url == "https://a.example/rss"
    assert user_name == "alice"


async def test_delete_all_users_cascades(session):
    _, (feed,) = await _user_with_feeds(session, "https://a.example/rss")
    await store.insert_post_if_absent(session, "x", "https://a.example/x", None, None, feed.id)

    assert await store.delete_all_users(session) == 1

    assert await store.list_feeds(session) == []
    assert (await session.execute(select(func.count()).select_from(Post))).scalar_one() == 0
