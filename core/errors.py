"""Errors raised by task operations.

Every error carries a message that can be shown to the user as-is.
"""


class TaskError(Exception):
    """Base class for user-facing task errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCommand(TaskError):
    """The text could not be understood or required text is missing."""


class NotFound(TaskError):
    """The identifier does not resolve to a visible task."""


class Forbidden(TaskError):
    """The acting user lacks the required relation to the task."""


class InvalidState(TaskError):
    """The operation does not apply to the task's current status."""


class AlreadyDone(TaskError):
    """Completing a task that is already completed. Informational, not a failure."""

    def __init__(self, task, message: str = "This task is already completed! 🎉"):
        super().__init__(message)
        self.task = task
