"""
Tests for the lifecycle state machines.
"""

import pytest

from core.listings import (
    ConflictError,
    Event,
    REQUEST_MACHINE,
    REVIEW_MACHINE,
    RequestStatus,
    ReviewStatus,
    transition,
)


class TestRequestMachine:
    """PropertyRequest transitions."""

    @pytest.mark.parametrize("event, expected", [
        (Event.APPROVE, RequestStatus.APPROVED),
        (Event.REJECT, RequestStatus.REJECTED),
        (Event.REQUEST_DELETION, RequestStatus.DELETION_REQUESTED),
    ])
    def test_pending_transitions(self, event, expected):
        assert transition(RequestStatus.PENDING, event) == expected

    def test_cancel_deletion_returns_to_pending(self):
        assert transition(RequestStatus.DELETION_REQUESTED, Event.CANCEL_DELETION) == RequestStatus.PENDING

    @pytest.mark.parametrize("status", [RequestStatus.APPROVED, RequestStatus.REJECTED])
    def test_resolved_request_cannot_be_approved_again(self, status):
        with pytest.raises(ConflictError) as exc_info:
            transition(status, Event.APPROVE)
        assert status.value in exc_info.value.message

    def test_deletion_requested_cannot_be_rejected(self):
        with pytest.raises(ConflictError):
            transition(RequestStatus.DELETION_REQUESTED, Event.REJECT)

    def test_terminal_states(self):
        assert REQUEST_MACHINE.is_terminal(RequestStatus.APPROVED)
        assert REQUEST_MACHINE.is_terminal(RequestStatus.REJECTED)
        assert not REQUEST_MACHINE.is_terminal(RequestStatus.PENDING)

    def test_allowed_events_from_pending(self):
        assert set(REQUEST_MACHINE.allowed_events(RequestStatus.PENDING)) == {
            Event.APPROVE,
            Event.REJECT,
            Event.REQUEST_DELETION,
        }


class TestReviewMachine:
    """Deletion and edit request transitions."""

    def test_pending_can_be_resolved(self):
        assert transition(ReviewStatus.PENDING, Event.APPROVE) == ReviewStatus.APPROVED
        assert transition(ReviewStatus.PENDING, Event.REJECT) == ReviewStatus.REJECTED

    @pytest.mark.parametrize("status", [ReviewStatus.APPROVED, ReviewStatus.REJECTED])
    @pytest.mark.parametrize("event", [Event.APPROVE, Event.REJECT])
    def test_resolved_once(self, status, event):
        with pytest.raises(ConflictError):
            transition(status, event)

    def test_subject_appears_in_message(self):
        with pytest.raises(ConflictError) as exc_info:
            transition(ReviewStatus.APPROVED, Event.APPROVE, "deletion request")
        assert "deletion request" in exc_info.value.message

    def test_deletion_events_not_accepted(self):
        assert Event.REQUEST_DELETION not in REVIEW_MACHINE.allowed_events(ReviewStatus.PENDING)
