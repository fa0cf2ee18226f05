"""Enums shared across the task domain."""

from enum import StrEnum


class TaskScope(StrEnum):
    """Whether a task is shared by the family or belongs to one member."""

    FAMILY = "FAMILY"
    PERSONAL = "PERSONAL"


class ExecutionStatus(StrEnum):
    """Task execution lifecycle state."""

    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"  # Terminal
    CANCELLED = "CANCELLED"  # Terminal


class CancellationReason(StrEnum):
    """Why a task execution was cancelled."""

    USER = "USER"
    DEFINITION_DELETED = "DEFINITION_DELETED"
