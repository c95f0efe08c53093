import itertools
from unittest.mock import patch

import pytest

from consultapi.core.exceptions import InvalidStateError, InvalidTransitionError
from consultapi.models.consultation import RequestStatus, RequestTransition
from consultapi.services.state_machine import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    ConsultationStateMachine,
    assert_transition,
    can_transition,
)
from tests.conftest import make_request

ALL_STATUSES = [s.value for s in RequestStatus]
ALLOWED_PAIRS = [(src, dst) for src, targets in TRANSITIONS.items() for dst in sorted(targets)]
FORBIDDEN_PAIRS = [
    (src, dst)
    for src, dst in itertools.product(ALL_STATUSES, ALL_STATUSES)
    if dst not in TRANSITIONS[src]
]


class TestTransitionTable:
    """전이표 테스트"""

    def test_table_covers_every_status(self):
        assert set(TRANSITIONS) == set(ALL_STATUSES)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {"released", "cancelled", "rejected"}

    @pytest.mark.parametrize("current,target", ALLOWED_PAIRS)
    def test_allowed_pairs_pass_guard(self, current, target):
        assert can_transition(current, target)
        assert_transition(current, target)

    @pytest.mark.parametrize("current,target", FORBIDDEN_PAIRS)
    def test_forbidden_pairs_raise(self, current, target):
        with pytest.raises(InvalidTransitionError) as exc:
            assert_transition(current, target)
        assert exc.value.status_code == 409
        assert exc.value.details == {"current_status": current, "target_status": target}

    def test_payment_happens_before_session(self):
        """결제 예약 -> 진행 순서"""
        assert can_transition(RequestStatus.ACCEPTED, RequestStatus.PAYMENT_RESERVED)
        assert can_transition(RequestStatus.PAYMENT_RESERVED, RequestStatus.IN_PROGRESS)
        assert not can_transition(RequestStatus.ACCEPTED, RequestStatus.IN_PROGRESS)
        assert not can_transition(RequestStatus.COMPLETED, RequestStatus.CANCELLED)


class TestConsultationStateMachine:
    """DB에 적용되는 상태 전이 테스트"""

    @pytest.mark.parametrize("current,target", ALLOWED_PAIRS)
    def test_allowed_pair_persists_target(self, db, requester, current, target):
        # Given
        request = make_request(db, requester.id, status=current)
        machine = ConsultationStateMachine(db)

        # When
        result = machine.transition(request.id, target, requester.id)
        db.commit()

        # Then
        assert result.status == target
        assert machine.load(request.id).status == target
        audit = db.query(RequestTransition).filter_by(request_id=request.id).all()
        assert [(a.from_status, a.to_status) for a in audit] == [(current, target)]

    @pytest.mark.parametrize(
        "current,target",
        [("draft", "accepted"), ("released", "cancelled"), ("cancelled", "pending_advisor")],
    )
    def test_forbidden_pair_leaves_status(self, db, requester, current, target):
        request = make_request(db, requester.id, status=current)
        machine = ConsultationStateMachine(db)

        with pytest.raises(InvalidTransitionError):
            machine.transition(request.id, target, requester.id)
        db.rollback()

        assert machine.load(request.id).status == current
        assert db.query(RequestTransition).filter_by(request_id=request.id).count() == 0

    def test_expected_from_mismatch_is_invalid_state(self, db, requester):
        request = make_request(db, requester.id, status="pending_advisor")
        machine = ConsultationStateMachine(db)

        with pytest.raises(InvalidStateError) as exc:
            machine.transition(
                request.id,
                RequestStatus.PAYMENT_RESERVED,
                requester.id,
                expected_from=[RequestStatus.ACCEPTED],
            )
        assert exc.value.details["current_status"] == "pending_advisor"

    def test_milestone_set_only_on_first_entry(self, db, requester):
        """payment_reserved 진입 시 awaiting_payment_at 기록, 이후 유지"""
        request = make_request(db, requester.id, status="accepted")
        machine = ConsultationStateMachine(db)

        first = machine.transition(request.id, "payment_reserved", requester.id)
        db.commit()
        stamped = first.awaiting_payment_at
        assert stamped is not None

        machine.request_repo.set_milestone(request.id, "awaiting_payment_at")
        db.commit()
        assert machine.load(request.id).awaiting_payment_at == stamped

    def test_closed_at_recorded_on_cancel(self, db, requester):
        request = make_request(db, requester.id, status="in_progress")
        machine = ConsultationStateMachine(db)

        result = machine.transition(request.id, "cancelled", requester.id)
        db.commit()

        assert result.closed_at is not None

    def test_lost_compare_and_set_raises_invalid_state(self, db, requester):
        """다른 트랜잭션이 먼저 상태를 바꾼 경우"""
        request = make_request(db, requester.id, status="completed")
        machine = ConsultationStateMachine(db)

        with patch.object(
            machine.request_repo, "compare_and_set_status", return_value=False
        ):
            with pytest.raises(InvalidStateError):
                machine.transition(request.id, "released", requester.id)
        db.rollback()

        assert db.query(RequestTransition).filter_by(request_id=request.id).count() == 0
