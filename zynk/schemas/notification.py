"""Notification schemas."""

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import ApiModel


class NotificationOut(ApiModel):
    id: int
    type: str
    title: str
    message: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="extra")
    is_read: bool
    created_at: datetime
