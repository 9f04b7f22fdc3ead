"""Task status and priority management.

Defines canonical task statuses, priorities and the allowed transitions.
"""

from enum import Enum


class TaskStatus(str, Enum):
    """Canonical task statuses."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str):
        """Parse a status string, handling alternate spellings."""
        if not value:
            return cls.PENDING

        normalized = value.strip().lower()
        mapping = {
            'pending': cls.PENDING,
            'todo': cls.PENDING,
            'in-progress': cls.IN_PROGRESS,
            'in_progress': cls.IN_PROGRESS,
            'started': cls.IN_PROGRESS,
            'completed': cls.COMPLETED,
            'done': cls.COMPLETED,
            'cancelled': cls.CANCELLED,
            'canceled': cls.CANCELLED,
        }
        return mapping.get(normalized, cls.PENDING)

    def __str__(self):
        return self.value


class TaskPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __str__(self):
        return self.value


def can_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Check if a task status transition is valid.

    Valid transitions:
    - PENDING -> IN_PROGRESS, COMPLETED, CANCELLED
    - IN_PROGRESS -> PENDING, COMPLETED, CANCELLED
    - COMPLETED -> PENDING (re-open)
    - CANCELLED -> PENDING (re-open)
    """
    if from_status == to_status:
        return True

    valid_transitions = {
        TaskStatus.PENDING: {TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
        TaskStatus.IN_PROGRESS: {TaskStatus.PENDING, TaskStatus.COMPLETED, TaskStatus.CANCELLED},
        TaskStatus.COMPLETED: {TaskStatus.PENDING},
        TaskStatus.CANCELLED: {TaskStatus.PENDING},
    }

    return to_status in valid_transitions.get(from_status, set())


def is_open(status) -> bool:
    """Snoozing and reminders only apply to tasks that are still being worked."""
    return TaskStatus.from_string(status) in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
