"""
No-show penalty policy

A user whose reservation is swept into EXPIRED gets one escalation per
sweep: penalty_count += 1 and a block on new reservations until
penalty_until. First offense blocks for 10 minutes, every later one for 30.
"""
from datetime import datetime, timedelta

from smartpick.core.config import settings
from smartpick.models import User


def penalty_duration(penalty_count: int) -> timedelta:
    """Block length for a user whose count is `penalty_count` before this offense."""
    if penalty_count == 0:
        return timedelta(minutes=settings.PENALTY_FIRST_OFFENSE_MINUTES)
    return timedelta(minutes=settings.PENALTY_REPEAT_OFFENSE_MINUTES)


def apply_penalty(user: User, now: datetime) -> datetime:
    """Escalate the user's penalty in place and return the new penalty_until."""
    penalty_until = now + penalty_duration(user.penalty_count or 0)
    user.penalty_count = (user.penalty_count or 0) + 1
    user.penalty_until = penalty_until
    return penalty_until
