from __future__ import annotations

import asyncio
import datetime as dt
import logging
import sys

import click

from gator.core import db
from gator.core.config import settings
from gator.core.errors import InvalidDurationError, StoreError
from gator.core.logging import configure_logging
from gator.core.scheduler import FeedScheduler, parse_duration
from gator.services.fetcher import Fetcher
from gator.services.ingest import scrape_next_feed

logger = logging.getLogger(__name__)


async def aggregate(interval: dt.timedelta) -> None:
    fetcher = Fetcher(settings.user_agent, settings.request_timeout_seconds)
    try:
        await db.init_db(db.engine)

        async def cycle():
            await scrape_next_feed(db.SessionLocal, fetcher)

        await FeedScheduler(cycle, interval).run_until_stopped()
    finally:
        await db.engine.dispose()


@click.group()
@click.option("--log-level", default=None, help="Overrides LOG_LEVEL.")
def cli(log_level):
    """gator: RSS feed aggregator."""
    configure_logging(log_level or settings.log_level)


@cli.command()
@click.argument("time_between_reqs")
def agg(time_between_reqs):
    """Fetch one feed now and another every TIME_BETWEEN_REQS (500ms, 30s, 1m, 1h)."""
    try:
        interval = parse_duration(time_between_reqs)
    except InvalidDurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Collecting feeds every {time_between_reqs}...")
    try:
        asyncio.run(aggregate(interval))
    except StoreError as e:
        logger.critical("Aggregator stopped on store failure: %s", e)
        sys.exit(1)
    click.echo("Shutting down feed aggregator...")


def main():
    cli()
