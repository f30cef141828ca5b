from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gator.core import db
from gator.core.config import settings
from gator.core.errors import AuthError
from gator.core.logging import configure_logging
from gator.core.scheduler import FeedScheduler, parse_duration
from gator.api.users import router as users_router
from gator.api.feeds import router as feeds_router
from gator.api.admin import router as admin_router
from gator.services.fetcher import Fetcher
from gator.services.ingest import scrape_next_feed

app = FastAPI(title="gator feed aggregator", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router)
app.include_router(feeds_router)
app.include_router(admin_router)

_scheduler: Optional[FeedScheduler] = None

@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=401, content={"detail": str(exc)})

@app.on_event("startup")
async def on_startup():
    global _scheduler
    configure_logging(settings.log_level)
    await db.init_db(db.engine)
    if settings.agg_interval:
        fetcher = Fetcher(settings.user_agent, settings.request_timeout_seconds)

        async def cycle():
            await scrape_next_feed(db.SessionLocal, fetcher)

        _scheduler = FeedScheduler(cycle, parse_duration(settings.agg_interval))
        _scheduler.start()

@app.on_event("shutdown")
async def on_shutdown():
    if _scheduler is not None:
        await _scheduler.shutdown()
    await db.engine.dispose()

@app.get("/health")
async def health():
    return {"ok": True}
