import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models.activity import Activity, ActivityType

logger = logging.getLogger(__name__)

_MESSAGES = {
    ActivityType.TASK_CREATED: '{name} created task "{task_title}"',
    ActivityType.TASK_COMPLETED: '{name} completed "{task_title}"',
    ActivityType.REWARD_REQUESTED: '{name} requested "{reward_title}"',
    ActivityType.REWARD_APPROVED: "{name}'s reward \"{reward_title}\" was approved",
    ActivityType.REWARD_DENIED: "{name}'s reward \"{reward_title}\" was denied",
    ActivityType.COINS_DEDUCTED: "{coin_amount} coins deducted from {name}",
    ActivityType.MEMBER_JOINED: "{name} joined the household",
}


def activity_message(type: ActivityType, data: dict[str, Any], display_name: str | None) -> str:
    template = _MESSAGES.get(type, "{name} performed an action")
    try:
        return template.format(name=display_name or "Someone", **data)
    except KeyError:
        return f"{display_name or 'Someone'} performed an action"


def record_activity(
    db: Session,
    *,
    household_id: str,
    type: ActivityType,
    user_id: str | None = None,
    display_name: str | None = None,
    **data: Any,
) -> Activity:
    """Add a feed entry to the caller's transaction."""
    activity = Activity(
        household_id=household_id,
        user_id=user_id,
        user_display_name=display_name,
        type=type,
        data=data,
        message=activity_message(type, data, display_name),
    )
    db.add(activity)
    return activity


def recent_activities(db: Session, *, household_id: str, limit: int = 10) -> list[Activity]:
    stmt = (
        select(Activity)
        .where(Activity.household_id == household_id)
        .order_by(Activity.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())
