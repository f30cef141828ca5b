from __future__ import annotations

import datetime as dt
import uuid

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from gator.core.db import Base
from gator.models.feed import utc_now

class FeedFollow(Base):
    __tablename__ = "feed_follows"
    __table_args__ = (
        UniqueConstraint("user_id", "feed_id", name="uq_feed_follows_user_feed"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user = relationship("User")

    feed_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False)
    feed = relationship("Feed")

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
