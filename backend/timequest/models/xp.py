from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Enum as SAEnum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base
from .types import UTCDateTime


class XPAction(str, Enum):
    TIMER_STARTED = "TIMER_STARTED"
    TIMER_COMPLETED = "TIMER_COMPLETED"
    TIMER_CANCELLED = "TIMER_CANCELLED"
    STREAK_BONUS = "STREAK_BONUS"
    LEVEL_UP = "LEVEL_UP"
    DAILY_GOAL = "DAILY_GOAL"


class XPHistory(Base):
    __tablename__ = "xp_history"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[XPAction] = mapped_column(
        SAEnum(XPAction, name="xpaction"), nullable=False
    )
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    timer_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("timers.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    timer = relationship("Timer")
