"""
TaskStreak — persisted streak snapshot, one row per task.

Derived data: the completion history in task_logs remains the source of
truth and the Streak Calculator can rebuild every row from it. This table
exists so status reads and the fast completion path don't rescan history.
"""
from datetime import datetime, date
from sqlalchemy import Integer, Date, DateTime, ForeignKey, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from habitstreak.db.base import Base


class TaskStreak(Base):
    __tablename__ = "task_streaks"
    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_task_streak_current_non_negative"),
        CheckConstraint("best_streak >= current_streak", name="ck_task_streak_best_gte_current"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    task_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    streak_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
