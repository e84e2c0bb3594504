"""Closed state machines for the two ledgers.

Every status change on a Completion or RewardRequest goes through
``transition`` so no call site can move an entry along an edge that is not
in its table.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol

from ..core.errors import PreconditionError
from ..models.reward import RequestStatus
from ..models.task import CompletionStatus

COMPLETION_TRANSITIONS: dict[CompletionStatus, frozenset[CompletionStatus]] = {
    CompletionStatus.PENDING: frozenset({CompletionStatus.APPROVED, CompletionStatus.REJECTED}),
    CompletionStatus.APPROVED: frozenset(),
    CompletionStatus.REJECTED: frozenset(),
}

REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.DENIED}),
    RequestStatus.APPROVED: frozenset({RequestStatus.FULFILLED}),
    RequestStatus.DENIED: frozenset(),
    RequestStatus.FULFILLED: frozenset(),
}

_TABLES = {
    CompletionStatus: COMPLETION_TRANSITIONS,
    RequestStatus: REQUEST_TRANSITIONS,
}


class _Stateful(Protocol):
    id: str
    status: StrEnum


def can_transition(current: StrEnum, target: StrEnum) -> bool:
    table = _TABLES[type(target)]
    return target in table.get(type(target)(current), frozenset())


def transition(entry: _Stateful, target: StrEnum) -> None:
    """Move ``entry`` to ``target`` or raise PreconditionError."""
    current = type(target)(entry.status)
    if not can_transition(current, target):
        kind = type(entry).__name__
        raise PreconditionError(
            f"{kind} {entry.id} is already {current.value} and cannot become {target.value}",
            code="INVALID_TRANSITION",
        )
    entry.status = target
