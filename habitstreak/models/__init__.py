from .task import Task
from .task_log import TaskLog
from .streak import TaskStreak

__all__ = [
    "Task",
    "TaskLog",
    "TaskStreak",
]
