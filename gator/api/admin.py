from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gator.core import db
from gator.core.config import settings
from gator.core.security import require_admin
from gator.services import store
from gator.services.fetcher import Fetcher
from gator.services.ingest import scrape_next_feed

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin)])

@router.post("/reset")
async def reset(session: AsyncSession = Depends(db.get_db)):
    deleted = await store.delete_all_users(session)
    return {"ok": True, "users_deleted": deleted}

@router.post("/fetch")
async def admin_fetch():
    # One cycle over the least recently fetched feed, same as a scheduler tick
    fetcher = Fetcher(settings.user_agent, settings.request_timeout_seconds)
    stats = await scrape_next_feed(db.SessionLocal, fetcher)
    return asdict(stats)
