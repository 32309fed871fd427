"""
Tests for WorkflowEngine.

Covers:
- Request creation (submitted and draft), routing at creation
- Full manpower chain to APPROVED_OPEN and on to hiring
- Send-back round trip with version archival
- Rank skip-ahead, vacant manager step, shared role queues
- HOLD, CANCEL, ARCHIVE and admin override
- Authorization failures leave no trace
- Version conflicts, unknown ids, rollback on persistence failure
- Editing drafts, inboxes and allowed actions
"""

import pytest
from sqlalchemy.exc import OperationalError

from approval_kernel.domain.workflow import Action, RequestKind, Role, Status
from approval_kernel.exceptions import (
    ActorNotFoundError,
    ForbiddenError,
    InvalidTransitionError,
    OptimisticLockError,
    PayloadValidationError,
    PersistenceError,
    RequestNotFoundError,
)
from approval_kernel.services.version_archiver import VersionArchiver


def _approve_through(engine, request_id, actors):
    result = None
    for actor_id in actors:
        result = engine.transition(request_id, actor_id, Action.APPROVE)
    return result


class TestCreate:

    def test_submitted_request_routes_to_manager(self, make_request, workflow_engine):
        request = make_request("alice")

        assert request.status == Status.PENDING_MANAGER
        assert request.version == 0
        assert request.revision_version == 0
        assert request.current_approver_id == "eng_manager"
        assert request.current_approver_role == Role.MANAGER
        assert request.requester_role == Role.REQUESTER
        assert workflow_engine.get_request_history(request.id) == []

    def test_draft_request_has_no_approver(self, make_request):
        request = make_request("alice", submit=False)
        assert request.status == Status.DRAFT
        assert request.current_approver_id is None
        assert request.current_approver_role is None

    def test_submit_draft_logs_submission(self, make_request, workflow_engine):
        request = make_request("alice", submit=False)
        result = workflow_engine.transition(request.id, "alice", Action.SUBMIT)

        assert result.previous_status == Status.DRAFT
        assert result.new_status == Status.PENDING_MANAGER
        assert result.version == 1
        history = workflow_engine.get_request_history(request.id)
        assert [(e.action, e.step_name) for e in history] == [(Action.SUBMIT, "Submission")]

    def test_manager_request_skips_to_hr_queue(self, make_request):
        request = make_request("eng_manager")
        assert request.status == Status.PENDING_HR
        assert request.current_approver_id is None
        assert request.current_approver_role == Role.HR

    def test_requester_without_manager_falls_back_to_hr(self, make_request):
        request = make_request("orphan")
        assert request.status == Status.PENDING_HR
        assert request.current_approver_role == Role.HR

    def test_timestamps_come_from_clock(self, make_request, deterministic_clock):
        request = make_request("alice")
        assert request.created_at.replace(tzinfo=None) == deterministic_clock.now().replace(tzinfo=None)

    def test_unknown_requester(self, make_request):
        with pytest.raises(ActorNotFoundError):
            make_request("ghost")

    def test_unknown_kind(self, workflow_engine):
        with pytest.raises(PayloadValidationError):
            workflow_engine.create("expense_claim", {}, "alice")

    def test_invalid_payload_creates_nothing(self, workflow_engine):
        with pytest.raises(PayloadValidationError):
            workflow_engine.create(
                RequestKind.MANPOWER,
                {"salary_range_min": 9000, "salary_range_max": 1000},
                "alice",
            )
        assert workflow_engine.list_requests("alice") == []

    def test_creation_logged(self, make_request, captured_logs):
        request = make_request("alice")
        created = [r for r in captured_logs() if r["message"] == "workflow_request_created"]
        assert created[0]["request_id"] == request.id


class TestFullChain:

    def test_manpower_reaches_approved_open(self, make_request, workflow_engine):
        request = make_request("alice")
        result = _approve_through(
            workflow_engine,
            request.id,
            ["eng_manager", "hr_partner", "fin_director", "ceo"],
        )

        assert result.new_status == Status.APPROVED_OPEN
        assert result.version == 4
        stored = workflow_engine.get_request(request.id)
        assert stored.status == Status.APPROVED_OPEN
        assert stored.current_approver_id is None
        assert stored.current_approver_role is None

        history = workflow_engine.get_request_history(request.id)
        assert [e.seq for e in history] == [1, 2, 3, 4]
        assert [e.step_name for e in history] == [
            "Manager Review",
            "HR Review",
            "Finance Review",
            "CEO Review",
        ]
        assert [e.actor_id for e in history] == ["eng_manager", "hr_partner", "fin_director", "ceo"]

    def test_each_step_assigns_expected_approver(self, make_request, workflow_engine):
        request = make_request("alice")

        result = workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)
        assert (result.new_status, result.current_approver_id, result.current_approver_role) == (
            Status.PENDING_HR,
            None,
            Role.HR,
        )
        result = workflow_engine.transition(request.id, "hr_director", Action.APPROVE)
        assert (result.current_approver_id, result.current_approver_role) == (None, Role.FINANCE)
        result = workflow_engine.transition(request.id, "fin_director", Action.APPROVE)
        assert (result.current_approver_id, result.current_approver_role) == ("ceo", Role.CEO)

    def test_terminal_status_rejects_further_approval(self, make_request, workflow_engine):
        request = make_request("alice")
        _approve_through(
            workflow_engine, request.id, ["eng_manager", "hr_partner", "fin_director", "ceo"]
        )

        with pytest.raises(InvalidTransitionError):
            workflow_engine.transition(request.id, "ceo", Action.APPROVE)
        assert workflow_engine.get_request(request.id).version == 4
        assert len(workflow_engine.get_request_history(request.id)) == 4

    def test_approved_open_moves_to_hiring(self, make_request, workflow_engine):
        request = make_request("alice")
        _approve_through(
            workflow_engine, request.id, ["eng_manager", "hr_partner", "fin_director", "ceo"]
        )

        result = workflow_engine.transition(request.id, "alice", Action.SUBMIT)
        assert result.new_status == Status.HIRING_IN_PROGRESS
        assert workflow_engine.get_request_history(request.id)[-1].step_name == "Submission"

    def test_ceo_request_ends_after_finance(self, make_request, workflow_engine):
        request = make_request("ceo")
        assert request.status == Status.PENDING_HR

        result = _approve_through(workflow_engine, request.id, ["hr_partner", "fin_director"])
        assert result.new_status == Status.APPROVED_OPEN
        assert result.version == 2

    def test_hr_trip_skips_hr_review(self, make_request, workflow_engine):
        request = make_request("hr_partner", kind=RequestKind.BUSINESS_TRIP)
        assert request.status == Status.PENDING_FINANCE

        result = workflow_engine.transition(request.id, "fin_director", Action.APPROVE)
        assert result.new_status == Status.PENDING_CEO
        assert result.current_approver_id == "ceo"

        result = workflow_engine.transition(request.id, "ceo", Action.APPROVE)
        assert result.new_status == Status.APPROVED

        with pytest.raises(InvalidTransitionError):
            workflow_engine.transition(request.id, "hr_partner", Action.ARCHIVE)


class TestSendBack:

    def test_round_trip(self, make_request, workflow_engine):
        request = make_request("alice", payload={"position_title": "SRE", "headcount": 2})

        first = workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)
        assert (first.new_status, first.version) == (Status.PENDING_HR, 1)

        second = workflow_engine.transition(
            request.id, "hr_partner", Action.REQUEST_CHANGE, comment="Clarify budget"
        )
        assert (second.previous_status, second.new_status, second.version) == (
            Status.PENDING_HR,
            Status.DRAFT,
            2,
        )

        stored = workflow_engine.get_request(request.id)
        assert stored.revision_version == 1
        assert stored.current_approver_id is None
        assert stored.current_approver_role is None

        versions = workflow_engine.get_request_versions(request.id)
        assert len(versions) == 1
        assert versions[0].version_number == 0
        assert versions[0].snapshot_data["status"] == "PENDING_HR"
        assert versions[0].snapshot_data["payload"] == {"position_title": "SRE", "headcount": 2}

        history = workflow_engine.get_request_history(request.id)
        assert len(history) == 2
        assert history[1].comment == "Clarify budget"
        assert history[1].step_name == "HR Review"

    def test_resubmit_after_send_back(self, make_request, workflow_engine):
        request = make_request("alice")
        workflow_engine.transition(request.id, "eng_manager", Action.REQUEST_CHANGE)
        workflow_engine.update(request.id, {"headcount": 3}, expected_version=1, user_id="alice")

        result = workflow_engine.transition(request.id, "alice", Action.SUBMIT)
        assert result.new_status == Status.PENDING_MANAGER
        assert result.version == 3

    def test_versions_listed_newest_first(self, make_request, workflow_engine):
        request = make_request("alice")
        for _ in range(3):
            workflow_engine.transition(request.id, "eng_manager", Action.REQUEST_CHANGE)
            workflow_engine.transition(request.id, "alice", Action.SUBMIT)

        versions = workflow_engine.get_request_versions(request.id)
        assert [v.version_number for v in versions] == [2, 1, 0]
        assert workflow_engine.get_request(request.id).revision_version == 3

    def test_requester_may_pull_back(self, make_request, workflow_engine):
        request = make_request("alice")
        result = workflow_engine.transition(request.id, "alice", Action.REQUEST_CHANGE)
        assert result.new_status == Status.DRAFT
        assert len(workflow_engine.get_request_versions(request.id)) == 1

    def test_non_send_back_transitions_archive_nothing(self, make_request, workflow_engine):
        request = make_request("alice")
        _approve_through(workflow_engine, request.id, ["eng_manager", "hr_partner"])
        assert workflow_engine.get_request_versions(request.id) == []


class TestHoldCancelArchive:

    def test_hold_keeps_status_and_queue(self, make_request, workflow_engine):
        request = make_request("orphan")
        result = workflow_engine.transition(request.id, "hr_partner", Action.HOLD)

        assert result.new_status == Status.PENDING_HR
        assert result.version == 1
        assert result.current_approver_role == Role.HR
        history = workflow_engine.get_request_history(request.id)
        assert [(e.action, e.step_name) for e in history] == [(Action.HOLD, "HR Review")]

    def test_hold_outside_hr_review_is_invalid(self, make_request, workflow_engine):
        request = make_request("alice")
        with pytest.raises(InvalidTransitionError):
            workflow_engine.transition(request.id, "eng_manager", Action.HOLD)

    def test_requester_cancels_then_archives(self, make_request, workflow_engine):
        request = make_request("alice")
        assert workflow_engine.transition(request.id, "alice", Action.CANCEL).new_status == Status.CANCELLED

        result = workflow_engine.transition(request.id, "alice", Action.ARCHIVE)
        assert result.new_status == Status.ARCHIVED
        assert [e.step_name for e in workflow_engine.get_request_history(request.id)] == [
            "Manager Review",
            "Cancelled",
        ]

    def test_cancel_after_manager_review_is_invalid(self, make_request, workflow_engine):
        request = make_request("alice")
        workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)
        with pytest.raises(InvalidTransitionError):
            workflow_engine.transition(request.id, "alice", Action.CANCEL)

    def test_other_user_cannot_cancel(self, make_request, workflow_engine):
        request = make_request("alice")
        with pytest.raises(ForbiddenError):
            workflow_engine.transition(request.id, "bob", Action.CANCEL)

    def test_admin_override(self, make_request, workflow_engine, captured_logs):
        request = make_request("alice")
        result = workflow_engine.transition(request.id, "admin", Action.APPROVE)
        assert result.new_status == Status.PENDING_HR
        assert any(r["message"] == "admin_override_used" for r in captured_logs())

    def test_admin_cannot_submit(self, make_request, workflow_engine):
        request = make_request("alice", submit=False)
        with pytest.raises(ForbiddenError):
            workflow_engine.transition(request.id, "admin", Action.SUBMIT)

    def test_rejected_request_archives(self, make_request, workflow_engine):
        request = make_request("alice")
        workflow_engine.transition(request.id, "eng_manager", Action.REJECT, comment="No budget")
        result = workflow_engine.transition(request.id, "alice", Action.ARCHIVE)
        assert result.new_status == Status.ARCHIVED


class TestAuthorization:

    def test_forbidden_actor_changes_nothing(self, make_request, workflow_engine):
        request = make_request("alice")

        with pytest.raises(ForbiddenError) as exc_info:
            workflow_engine.transition(request.id, "bob", Action.APPROVE)
        assert exc_info.value.code == "FORBIDDEN"

        stored = workflow_engine.get_request(request.id)
        assert stored.status == Status.PENDING_MANAGER
        assert stored.version == 0
        assert workflow_engine.get_request_history(request.id) == []

    def test_wrong_role_for_queue(self, make_request, workflow_engine):
        request = make_request("orphan")
        with pytest.raises(ForbiddenError):
            workflow_engine.transition(request.id, "fin_director", Action.APPROVE)

    def test_requester_cannot_review_own_request(self, make_request, workflow_engine):
        request = make_request("hr_partner")
        assert request.current_approver_role == Role.HR

        with pytest.raises(ForbiddenError) as exc_info:
            workflow_engine.transition(request.id, "hr_partner", Action.APPROVE)
        assert "own request" in exc_info.value.reason

        result = workflow_engine.transition(request.id, "hr_director", Action.APPROVE)
        assert result.new_status == Status.PENDING_FINANCE

    def test_designated_approver_only(self, make_request, workflow_engine):
        request = make_request("alice")
        _approve_through(workflow_engine, request.id, ["eng_manager", "hr_partner", "fin_director"])
        with pytest.raises(ForbiddenError):
            workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)


class TestFailures:

    def test_unknown_request(self, workflow_engine):
        with pytest.raises(RequestNotFoundError) as exc_info:
            workflow_engine.transition("missing", "alice", Action.SUBMIT)
        assert exc_info.value.code == "NOT_FOUND"

    def test_unknown_actor(self, make_request, workflow_engine):
        request = make_request("alice")
        with pytest.raises(ActorNotFoundError):
            workflow_engine.transition(request.id, "ghost", Action.APPROVE)

    @pytest.mark.parametrize(
        "method", ["get_request", "get_request_history", "get_request_versions"]
    )
    def test_queries_on_unknown_request(self, workflow_engine, method):
        with pytest.raises(RequestNotFoundError):
            getattr(workflow_engine, method)("missing")

    def test_unknown_action(self, make_request, workflow_engine):
        request = make_request("alice")
        with pytest.raises(InvalidTransitionError):
            workflow_engine.transition(request.id, "eng_manager", "ESCALATE")

    def test_stale_version(self, make_request, workflow_engine):
        request = make_request("alice")
        workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)

        with pytest.raises(OptimisticLockError) as exc_info:
            workflow_engine.transition(
                request.id, "hr_partner", Action.APPROVE, expected_version=0
            )
        assert exc_info.value.code == "CONFLICT"
        assert exc_info.value.actual_version == 1
        assert workflow_engine.get_request(request.id).status == Status.PENDING_HR

    def test_persistence_failure_rolls_back(self, make_request, workflow_engine, monkeypatch):
        request = make_request("alice")
        workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)

        def _fail(self, *args, **kwargs):
            raise OperationalError("INSERT INTO request_versions", {}, Exception("disk I/O error"))

        monkeypatch.setattr(VersionArchiver, "archive", _fail)

        with pytest.raises(PersistenceError) as exc_info:
            workflow_engine.transition(request.id, "hr_partner", Action.REQUEST_CHANGE)
        assert exc_info.value.code == "INTERNAL"

        stored = workflow_engine.get_request(request.id)
        assert stored.status == Status.PENDING_HR
        assert stored.version == 1
        assert stored.revision_version == 0
        assert len(workflow_engine.get_request_history(request.id)) == 1

    def test_committed_transition_logged(self, make_request, workflow_engine, captured_logs):
        request = make_request("alice")
        workflow_engine.transition(request.id, "eng_manager", Action.APPROVE)

        committed = [r for r in captured_logs() if r["message"] == "workflow_transition_committed"]
        assert len(committed) == 1
        assert committed[0]["request_id"] == request.id
        assert committed[0]["actor_id"] == "eng_manager"
        assert committed[0]["action"] == "APPROVE"
        assert committed[0]["new_status"] == "PENDING_HR"


class TestUpdate:

    def test_edit_draft(self, make_request, workflow_engine):
        request = make_request("alice", submit=False, payload={"position_title": "QA", "headcount": 1})
        updated = workflow_engine.update(
            request.id, {"headcount": 4}, expected_version=0, user_id="alice"
        )
        assert updated.version == 1
        assert updated.payload == {"position_title": "QA", "headcount": 4}

    def test_version_checked_before_ownership(self, make_request, workflow_engine):
        request = make_request("alice", submit=False)
        with pytest.raises(OptimisticLockError):
            workflow_engine.update(request.id, {}, expected_version=3, user_id="bob")

    def test_only_requester_may_edit(self, make_request, workflow_engine):
        request = make_request("alice", submit=False)
        with pytest.raises(ForbiddenError):
            workflow_engine.update(request.id, {"headcount": 2}, expected_version=0, user_id="bob")

    def test_submitted_request_not_editable(self, make_request, workflow_engine):
        request = make_request("alice")
        with pytest.raises(ForbiddenError):
            workflow_engine.update(request.id, {"headcount": 2}, expected_version=0, user_id="alice")

    def test_salary_rule_enforced(self, make_request, workflow_engine):
        request = make_request("alice", submit=False, payload={"salary_range_max": 5000})
        with pytest.raises(PayloadValidationError):
            workflow_engine.update(
                request.id, {"salary_range_min": 7000}, expected_version=0, user_id="alice"
            )
        assert workflow_engine.get_request(request.id).version == 0

    def test_unknown_request(self, workflow_engine):
        with pytest.raises(RequestNotFoundError):
            workflow_engine.update("missing", {}, expected_version=0, user_id="alice")


class TestInboxAndAllowedActions:

    def test_pending_approvals(self, make_request, workflow_engine):
        first = make_request("alice")
        second = make_request("bob")
        workflow_engine.transition(second.id, "eng_manager", Action.APPROVE)

        assert [r.id for r in workflow_engine.pending_approvals("eng_manager")] == [first.id]
        assert [r.id for r in workflow_engine.pending_approvals("hr_partner")] == [second.id]
        assert [r.id for r in workflow_engine.pending_approvals("hr_director")] == [second.id]
        assert workflow_engine.pending_approvals("alice") == []

    def test_own_request_not_in_inbox(self, make_request, workflow_engine):
        make_request("hr_partner")
        assert workflow_engine.pending_approvals("hr_partner") == []
        assert len(workflow_engine.pending_approvals("hr_director")) == 1

    def test_allowed_actions(self, make_request, workflow_engine):
        request = make_request("alice")

        assert workflow_engine.allowed_actions(request.id, "eng_manager") == {
            Action.APPROVE,
            Action.REJECT,
            Action.REQUEST_CHANGE,
        }
        assert workflow_engine.allowed_actions(request.id, "alice") == {
            Action.CANCEL,
            Action.REQUEST_CHANGE,
        }
        assert workflow_engine.allowed_actions(request.id, "bob") == frozenset()
        assert workflow_engine.allowed_actions(request.id, "admin") == {
            Action.APPROVE,
            Action.REJECT,
            Action.REQUEST_CHANGE,
            Action.CANCEL,
        }

    def test_admin_allowed_actions_records_no_override(
        self, make_request, workflow_engine, captured_logs
    ):
        request = make_request("alice")
        assert Action.APPROVE in workflow_engine.allowed_actions(request.id, "admin")
        assert not any(r["message"] == "admin_override_used" for r in captured_logs())

    def test_list_requests_by_status(self, make_request, workflow_engine):
        draft = make_request("alice", submit=False)
        make_request("alice")
        assert [r.id for r in workflow_engine.list_requests("alice", Status.DRAFT)] == [draft.id]
        assert len(workflow_engine.list_requests("alice")) == 2
