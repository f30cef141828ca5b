from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gator.core.errors import MalformedFeedError, NetworkError
from gator.services import store
from gator.services.fetcher import Fetcher
from gator.services.parser import RSSItem, parse_feed

logger = logging.getLogger(__name__)

class InvalidPubDate(ValueError):
    pass

@dataclass
class CycleStats:
    feed_name: Optional[str] = None
    feed_url: Optional[str] = None
    items_found: int = 0
    inserted: int = 0
    duplicates: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def idle(self) -> bool:
        return self.feed_url is None

def parse_pub_date(raw: Optional[str]) -> Optional[dt.datetime]:
    """RFC 822 (RSS pubDate) or ISO 8601 -> aware UTC datetime; blank -> None."""
    if raw is None or not raw.strip():
        return None
    raw = raw.strip()
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        try:
            parsed = dt.datetime.fromisoformat(raw)
        except ValueError:
            raise InvalidPubDate(f"unrecognised date {raw!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)

async def _store_item(session: AsyncSession, item: RSSItem, feed_id, stats: CycleStats, feed_name: str) -> None:
    if not item.title or not item.link:
        stats.skipped += 1
        logger.warning("Skipping item without title or link in %s", feed_name)
        return
    try:
        published_at = parse_pub_date(item.pub_date)
    except InvalidPubDate as e:
        stats.skipped += 1
        logger.warning("Skipping %s from %s: %s", item.link, feed_name, e)
        return

    post = await store.insert_post_if_absent(
        session,
        title=item.title,
        url=item.link,
        description=item.description or None,
        published_at=published_at,
        feed_id=feed_id,
    )
    if post is None:
        stats.duplicates += 1
    else:
        stats.inserted += 1

async def scrape_next_feed(session_factory: async_sessionmaker[AsyncSession], fetcher: Fetcher) -> CycleStats:
    """Run one ingestion cycle over the least recently fetched feed.

    Fetch and parse failures are logged and reported in the returned stats.
    StoreError propagates.
    """
    async with session_factory() as session:
        feed = await store.next_feed_to_fetch(session)
        if feed is None:
            logger.info("No feeds found to scrape.")
            return CycleStats()

        feed_id, name, url = feed.id, feed.name, feed.url
        stats = CycleStats(feed_name=name, feed_url=url)
        logger.info("Fetching feed: %s (%s)...", name, url)
        # Stamp before fetching so a failing feed rotates to the back of the queue
        await store.mark_feed_fetched(session, feed_id)

        try:
            text = await fetcher.fetch_text(url)
            doc = parse_feed(text)
        except (NetworkError, MalformedFeedError) as e:
            stats.error = f"{type(e).__name__}: {e}"
            logger.error("Error fetching %s (%s): %s", name, url, stats.error)
            return stats

        stats.items_found = len(doc.items)
        logger.info("Found %d posts in %s", stats.items_found, name)
        for item in doc.items:
            await _store_item(session, item, feed_id, stats, name)

        logger.info(
            "Stored %s: %d new, %d duplicate, %d skipped",
            name, stats.inserted, stats.duplicates, stats.skipped,
        )
        return stats
