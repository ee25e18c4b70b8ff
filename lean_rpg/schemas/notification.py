"""
Notification schemas.
"""

from enum import Enum
from typing import Optional

from pydantic import field_validator

from lean_rpg.schemas.common import CamelModel


class NotificationType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    TASK = "task"


class Notification(CamelModel):
    """Backend-created notice; `read` is the only field the client changes."""

    id: str
    title: str
    message: str = ""
    type: NotificationType = NotificationType.INFO
    read: bool = False
    timestamp: str = ""
    related_task_id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return str(value)
