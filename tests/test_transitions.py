from __future__ import annotations

import pytest

from chorecoins.core.errors import PreconditionError
from chorecoins.models.reward import RequestStatus, RewardRequest
from chorecoins.models.task import Completion, CompletionStatus
from chorecoins.services.transitions import can_transition, transition


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        (CompletionStatus.PENDING, CompletionStatus.APPROVED, True),
        (CompletionStatus.PENDING, CompletionStatus.REJECTED, True),
        (CompletionStatus.APPROVED, CompletionStatus.REJECTED, False),
        (CompletionStatus.REJECTED, CompletionStatus.APPROVED, False),
        (CompletionStatus.APPROVED, CompletionStatus.APPROVED, False),
        (RequestStatus.PENDING, RequestStatus.FULFILLED, False),
        (RequestStatus.APPROVED, RequestStatus.FULFILLED, True),
        (RequestStatus.DENIED, RequestStatus.APPROVED, False),
        (RequestStatus.FULFILLED, RequestStatus.APPROVED, False),
    ],
)
def test_transition_table(current, target, allowed) -> None:
    assert can_transition(current, target) is allowed


def test_transition_accepts_plain_strings_from_storage() -> None:
    assert can_transition("pending", CompletionStatus.APPROVED)


def test_transition_moves_or_refuses() -> None:
    completion = Completion(id="c1", status=CompletionStatus.PENDING)
    transition(completion, CompletionStatus.APPROVED)
    assert completion.status == CompletionStatus.APPROVED

    request = RewardRequest(id="r1", status=RequestStatus.DENIED)
    with pytest.raises(PreconditionError) as exc:
        transition(request, RequestStatus.APPROVED)
    assert exc.value.code == "INVALID_TRANSITION"
    assert request.status == RequestStatus.DENIED
