from datetime import datetime, date
from sqlalchemy import Integer, Date, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from habitstreak.db.base import Base


class TaskLog(Base):
    """Completion count for one task on one calendar day. count=0 means cleared."""

    __tablename__ = "task_logs"
    __table_args__ = (
        UniqueConstraint("task_id", "day", name="uq_task_log_task_day"),
        CheckConstraint("count >= 0", name="ck_task_log_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
