from datetime import datetime
from typing import Any
from .common import ORMModel


class ActivityOut(ORMModel):
    id: str
    household_id: str
    user_id: str | None = None
    user_display_name: str | None = None
    type: str
    data: dict[str, Any] | None = None
    message: str
    created_at: datetime
