"""
Lifecycle State Machines

Each record type has an explicit transition table. All status changes go
through transition(), so the set of legal moves is enumerable in one place:

    PropertyRequest:  pending -> approved | rejected | deletion_requested
                      deletion_requested -> pending (deletion rejected)
    Deletion / Edit:  pending -> approved | rejected

An event that is not in the table raises ConflictError. Rejecting a
request whose status is deletion_requested is not allowed; the pending
DeletionRequest must be resolved first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final, Mapping, Optional, Union

from core.listings.errors import ConflictError
from core.listings.schema import RequestStatus, ReviewStatus


class Event(Enum):
    """Actions that move a record between statuses."""

    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_DELETION = "request_deletion"
    CANCEL_DELETION = "cancel_deletion"


Status = Union[RequestStatus, ReviewStatus]


@dataclass(frozen=True)
class StateMachine:
    """A named, statically enumerable transition table."""

    subject: str
    transitions: Mapping[tuple[Enum, Event], Enum]

    def transition(
        self, current: Enum, event: Event, subject: Optional[str] = None
    ) -> Enum:
        """
        Compute the next status.

        Raises:
            ConflictError: If the event is not allowed from current
        """
        try:
            return self.transitions[(current, event)]
        except KeyError:
            raise ConflictError(
                f"Cannot {event.value.replace('_', ' ')} a {subject or self.subject} "
                f"with status '{current.value}'"
            ) from None

    def allowed_events(self, current: Enum) -> list[Event]:
        """List the events accepted in the given status."""
        return [event for (state, event) in self.transitions if state == current]

    def is_terminal(self, current: Enum) -> bool:
        """Check if no further transition is possible."""
        return not self.allowed_events(current)


REQUEST_MACHINE: Final = StateMachine(
    subject="property request",
    transitions={
        (RequestStatus.PENDING, Event.APPROVE): RequestStatus.APPROVED,
        (RequestStatus.PENDING, Event.REJECT): RequestStatus.REJECTED,
        (RequestStatus.PENDING, Event.REQUEST_DELETION): RequestStatus.DELETION_REQUESTED,
        (RequestStatus.DELETION_REQUESTED, Event.CANCEL_DELETION): RequestStatus.PENDING,
    },
)

REVIEW_MACHINE: Final = StateMachine(
    subject="review request",
    transitions={
        (ReviewStatus.PENDING, Event.APPROVE): ReviewStatus.APPROVED,
        (ReviewStatus.PENDING, Event.REJECT): ReviewStatus.REJECTED,
    },
)

_MACHINES: Final[dict[type, StateMachine]] = {
    RequestStatus: REQUEST_MACHINE,
    ReviewStatus: REVIEW_MACHINE,
}


def machine_for(current: Status) -> StateMachine:
    """Get the state machine governing a status value."""
    return _MACHINES[type(current)]


def transition(current: Status, event: Event, subject: Optional[str] = None) -> Status:
    """Single entry point for every status change."""
    return machine_for(current).transition(current, event, subject)
