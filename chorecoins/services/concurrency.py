from __future__ import annotations

import logging
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.config import settings
from ..core.errors import ConflictError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def retry_on_conflict(fn: Callable[P, R]) -> Callable[P, R]:
    """Re-run a read-modify-write unit when a versioned row changed under it.

    The wrapped function must take the Session as its first argument, load
    everything it mutates itself and commit at the end. Rolling back expires
    the session, so each attempt re-reads current state and re-checks its
    guards.
    """

    @wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        db: Session = args[0]  # type: ignore[assignment]
        attempts = max(1, settings.CONFLICT_RETRIES)
        for attempt in range(1, attempts + 1):
            try:
                return fn(*args, **kwargs)
            except StaleDataError:
                db.rollback()
                logger.warning(f"{fn.__name__}: concurrent update detected (attempt {attempt}/{attempts})")
        raise ConflictError(f"{fn.__name__} kept conflicting with concurrent updates; try again")

    return wrapper
