"""
Task — a trackable habit plus its streak policy columns.

The engine only reads the streak_* columns and archived_at; everything
else belongs to the task subsystem.

streak_skip_days: JSON-encoded list of weekday ints stored as Text,
0 = Sunday … 6 = Saturday.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from habitstreak.db.base import Base


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    streak_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    streak_minimum_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    streak_skip_weekends: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    streak_skip_days: Mapped[str] = mapped_column(
        Text, nullable=False, default="[]",
        comment="JSON list of weekday ints, 0 = Sunday",
    )
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
