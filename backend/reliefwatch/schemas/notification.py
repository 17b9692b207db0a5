"""In-app notification schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    signal_id: int | None
    data: dict[str, Any]
    timestamp: datetime
    read: bool

    model_config = {"from_attributes": True}
