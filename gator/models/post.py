from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import String, DateTime, ForeignKey, Text, Uuid, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from gator.core.db import Base
from gator.models.feed import utc_now

class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_published_at", "published_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    feed_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False)
    feed = relationship("Feed")

    title: Mapped[str] = mapped_column(String, nullable=False)
    # Dedup key: a second insert of the same URL is dropped
    url: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
