from hearth.services import (
    generation_service,
    notification_service,
    task_definition_service,
    task_execution_service,
)


__all__ = [
    "generation_service",
    "notification_service",
    "task_definition_service",
    "task_execution_service",
]
