"""Tests for the assignee, note and reviewer policies."""

from datetime import timedelta

import pytest

from ticketflow.c1_ticket_enums.ticket_enums import EventKind, TicketStatus
from ticketflow.c1_ticket_models.activity import ActivityEvent
from ticketflow.c2_workflow_service import (
    MissingPreconditionError,
    can_review,
    check_preconditions,
    requires_assignee,
    requires_note,
)
from ticketflow.c2_workflow_service.workflow_rules import entered_in_progress_at
from tests.conftest import BASE_TIME

S = TicketStatus


def _event(kind, ticket_id, ts, run_id=""):
    return ActivityEvent(ts=ts, event=kind.value, ticket=ticket_id, run_id=run_id)


class TestPolicies:
    def test_requires_assignee_only_for_in_progress(self):
        assert requires_assignee(S.IN_PROGRESS)
        assert not any(requires_assignee(s) for s in S if s != S.IN_PROGRESS)

    def test_requires_note_only_for_submission(self):
        assert requires_note(S.IN_PROGRESS, S.REVIEW)
        assert not requires_note(S.REVIEW, S.DONE)
        assert not requires_note(S.REVIEW, S.REWORK)
        assert not requires_note(S.BLOCKED, S.REVIEW)


class TestCheckPreconditions:
    def test_missing_assignee(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa")
        with pytest.raises(MissingPreconditionError) as exc_info:
            check_preconditions(ticket, S.IN_PROGRESS, activity_log)
        assert exc_info.value.policy == "requires-assignee"
        assert "st pick st_aaaaaa" in str(exc_info.value)

    def test_assignee_present(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", assignee="alice")
        check_preconditions(ticket, S.IN_PROGRESS, activity_log)

    def test_missing_note(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        activity_log.append(_event(EventKind.STATUS_IN_PROGRESS, ticket.id, BASE_TIME))
        with pytest.raises(MissingPreconditionError) as exc_info:
            check_preconditions(ticket, S.REVIEW, activity_log, run_id="run-1")
        assert exc_info.value.policy == "requires-note"
        assert "--run-id run-1" in str(exc_info.value)

    def test_note_before_entering_in_progress_does_not_count(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        activity_log.append(_event(EventKind.TICKET_NOTE, ticket.id, BASE_TIME))
        activity_log.append(
            _event(EventKind.STATUS_IN_PROGRESS, ticket.id, BASE_TIME + timedelta(hours=1))
        )
        with pytest.raises(MissingPreconditionError):
            check_preconditions(ticket, S.REVIEW, activity_log)

    def test_note_after_entering_in_progress(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        activity_log.append(_event(EventKind.STATUS_IN_PROGRESS, ticket.id, BASE_TIME))
        activity_log.append(_event(EventKind.TICKET_NOTE, ticket.id, BASE_TIME + timedelta(minutes=5)))
        check_preconditions(ticket, S.REVIEW, activity_log)

    def test_override_into_in_progress_makes_note_stale(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        activity_log.append(_event(EventKind.STATUS_IN_PROGRESS, ticket.id, BASE_TIME))
        activity_log.append(_event(EventKind.TICKET_NOTE, ticket.id, BASE_TIME + timedelta(minutes=5)))
        activity_log.append(
            ActivityEvent(
                ts=BASE_TIME + timedelta(minutes=10),
                event=EventKind.STATUS_OVERRIDE.value,
                ticket=ticket.id,
                data={"from": "REVIEW", "to": "IN-PROGRESS", "reason": "reopen"},
            )
        )
        assert entered_in_progress_at(activity_log, ticket) == BASE_TIME + timedelta(minutes=10)
        with pytest.raises(MissingPreconditionError):
            check_preconditions(ticket, S.REVIEW, activity_log)

    def test_override_elsewhere_does_not_reset(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        activity_log.append(_event(EventKind.STATUS_IN_PROGRESS, ticket.id, BASE_TIME))
        activity_log.append(
            ActivityEvent(
                ts=BASE_TIME + timedelta(minutes=10),
                event=EventKind.STATUS_OVERRIDE.value,
                ticket=ticket.id,
                data={"from": "OPEN", "to": "REVIEW"},
            )
        )
        assert entered_in_progress_at(activity_log, ticket) == BASE_TIME

    def test_note_on_other_ticket_does_not_count(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        activity_log.append(_event(EventKind.STATUS_IN_PROGRESS, ticket.id, BASE_TIME))
        activity_log.append(_event(EventKind.TICKET_NOTE, "st_bbbbbb", BASE_TIME + timedelta(minutes=5)))
        with pytest.raises(MissingPreconditionError):
            check_preconditions(ticket, S.REVIEW, activity_log)

    def test_since_falls_back_to_updated_at(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.IN_PROGRESS, assignee="alice")
        assert entered_in_progress_at(activity_log, ticket) == ticket.updated_at

        activity_log.append(_event(EventKind.TICKET_NOTE, ticket.id, ticket.updated_at + timedelta(seconds=1)))
        check_preconditions(ticket, S.REVIEW, activity_log)

    def test_transitions_without_policies(self, make_ticket, activity_log):
        ticket = make_ticket("st_aaaaaa", status=S.REVIEW)
        check_preconditions(ticket, S.DONE, activity_log)
        check_preconditions(ticket, S.REWORK, activity_log)


class TestCanReview:
    def test_fresh_run_may_review(self, activity_log):
        activity_log.append(_event(EventKind.TICKET_NOTE, "st_aaaaaa", BASE_TIME, run_id="run-1"))
        assert can_review(activity_log, "st_aaaaaa", "run-2")

    def test_run_that_touched_ticket_may_not(self, activity_log):
        activity_log.append(_event(EventKind.TICKET_NOTE, "st_aaaaaa", BASE_TIME, run_id="run-1"))
        assert not can_review(activity_log, "st_aaaaaa", "run-1")
