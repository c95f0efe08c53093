import threading

import pytest

from consultapi.core.exceptions import (
    ForbiddenError,
    GatewayNotImplementedError,
    InsufficientBalanceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from consultapi.models.consultation import AdvisorRating
from consultapi.models.ledger import Order
from consultapi.models.user import UserRole
from consultapi.models.withdrawal import WithdrawalRequest
from consultapi.repositories.consultant_repository import ConsultantRepository
from consultapi.services.withdrawal_service import WithdrawalService
from tests.conftest import make_consultant, make_request, make_user


def settle(db, payer_id, advisor_id, payout, request_status="released", order_status="completed"):
    """정산된 상담 한 건과 원장 항목 생성"""
    request = make_request(db, payer_id, status=request_status, advisor_id=advisor_id)
    order = Order(
        payer_id=payer_id,
        advisor_id=advisor_id,
        request_id=request.id,
        service_type="consultation",
        status=order_status,
        gross_amount=payout * 2,
        platform_fee=payout,
        advisor_payout=payout,
        net_amount=payout,
        currency="KWD",
    )
    db.add(order)
    db.commit()
    return order


class TestBalance:
    """원장 기반 잔액 계산"""

    def test_balance_is_released_payouts_minus_reserved(
        self, db, test_settings, requester, advisor
    ):
        # Given
        settle(db, requester.id, advisor.id, 7000)
        settle(db, requester.id, advisor.id, 3000)
        service = WithdrawalService(db, test_settings)

        # When
        service.request_withdrawal(advisor.id, 4000)

        # Then
        assert service.get_balance(advisor.id) == 6000

    def test_unreleased_or_unsettled_orders_do_not_count(
        self, db, test_settings, requester, advisor
    ):
        settle(db, requester.id, advisor.id, 5000, request_status="completed")
        settle(db, requester.id, advisor.id, 5000, order_status="pending")

        assert WithdrawalService(db, test_settings).get_balance(advisor.id) == 0

    def test_balance_never_negative(self, db, test_settings, advisor):
        db.add(WithdrawalRequest(advisor_id=advisor.id, amount=500, status="pending"))
        db.commit()

        assert WithdrawalService(db, test_settings).get_balance(advisor.id) == 0

    def test_rejected_withdrawal_returns_to_balance(
        self, db, test_settings, requester, advisor, admin_user
    ):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 1000)
        assert service.get_balance(advisor.id) == 0

        service.reject_withdrawal(withdrawal.id, admin_user, "Bank details mismatch")

        assert service.get_balance(advisor.id) == 1000

    def test_approved_withdrawal_stays_reserved(
        self, db, test_settings, requester, advisor, admin_user
    ):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 600)

        service.approve_withdrawal(withdrawal.id, admin_user)

        assert service.get_balance(advisor.id) == 400


class TestWithdrawalService:
    """출금 요청/처리 테스트"""

    def test_withdraw_entire_balance_once(self, db, test_settings, requester, advisor):
        settle(db, requester.id, advisor.id, 2500)
        service = WithdrawalService(db, test_settings)

        withdrawal = service.request_withdrawal(
            advisor.id, 2500, bank_details={"iban": "KW00TEST"}, notes="monthly"
        )

        assert withdrawal.status == "pending"
        assert withdrawal.bank_details == {"iban": "KW00TEST"}
        with pytest.raises(InsufficientBalanceError) as exc:
            service.request_withdrawal(advisor.id, 1)
        assert exc.value.details == {"available": 0, "requested": 1}

    def test_over_balance_rejected_without_row(self, db, test_settings, requester, advisor):
        settle(db, requester.id, advisor.id, 100)
        service = WithdrawalService(db, test_settings)

        with pytest.raises(InsufficientBalanceError) as exc:
            service.request_withdrawal(advisor.id, 101)

        assert exc.value.status_code == 400
        assert db.query(WithdrawalRequest).count() == 0

    @pytest.mark.parametrize("amount", [0, -10])
    def test_non_positive_amount_rejected(self, db, test_settings, advisor, amount):
        with pytest.raises(ValidationError):
            WithdrawalService(db, test_settings).request_withdrawal(advisor.id, amount)

    def test_unknown_advisor(self, db, test_settings):
        with pytest.raises(NotFoundError):
            WithdrawalService(db, test_settings).request_withdrawal(999, 10)

    def test_approve_records_admin(self, db, test_settings, requester, advisor, admin_user):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 1000)

        approved = service.approve_withdrawal(withdrawal.id, admin_user)

        assert approved.status == "approved"
        assert approved.approved_by == admin_user.id
        assert approved.approved_at is not None

    def test_reject_without_reason(self, db, test_settings, requester, advisor, admin_user):
        """사유 없이도 거절 가능 (저장값 None)"""
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        first = service.request_withdrawal(advisor.id, 400)
        second = service.request_withdrawal(advisor.id, 300)

        rejected = service.reject_withdrawal(first.id, admin_user)
        blank = service.reject_withdrawal(second.id, admin_user, "   ")

        assert rejected.status == "rejected"
        assert rejected.rejection_reason is None
        assert rejected.rejected_by == admin_user.id
        assert blank.rejection_reason is None
        assert service.get_balance(advisor.id) == 1000

    def test_reject_reason_is_trimmed(self, db, test_settings, requester, advisor, admin_user):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 1000)

        rejected = service.reject_withdrawal(withdrawal.id, admin_user, " no ")

        assert rejected.rejection_reason == "no"

    def test_terminal_withdrawal_cannot_move(
        self, db, test_settings, requester, advisor, admin_user
    ):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 1000)
        service.reject_withdrawal(withdrawal.id, admin_user, "duplicate")

        with pytest.raises(InvalidTransitionError):
            service.approve_withdrawal(withdrawal.id, admin_user)

    def test_admin_only_operations(self, db, test_settings, requester, advisor, advisor_user):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 1000)

        with pytest.raises(ForbiddenError):
            service.approve_withdrawal(withdrawal.id, advisor_user)
        with pytest.raises(ForbiddenError):
            service.list_withdrawals(advisor_user)

    def test_complete_is_not_connected(self, db, test_settings, requester, advisor, admin_user):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        withdrawal = service.request_withdrawal(advisor.id, 1000)
        service.approve_withdrawal(withdrawal.id, admin_user)

        with pytest.raises(GatewayNotImplementedError) as exc:
            service.complete_withdrawal(withdrawal.id, admin_user)

        assert exc.value.status_code == 501
        assert exc.value.message == "WITHDRAWALS_NOT_CONNECTED_TO_GATEWAY"
        assert service.withdrawal_repo.get_by_id(withdrawal.id).status == "approved"

    def test_listing(self, db, test_settings, requester, advisor, admin_user):
        settle(db, requester.id, advisor.id, 1000)
        service = WithdrawalService(db, test_settings)
        first = service.request_withdrawal(advisor.id, 300)
        second = service.request_withdrawal(advisor.id, 200)
        service.approve_withdrawal(first.id, admin_user)

        mine = service.list_advisor_withdrawals(advisor.id)
        pending = service.list_withdrawals(admin_user, status="pending")

        assert {w.id for w in mine} == {first.id, second.id}
        assert [w.id for w in pending] == [second.id]

    def test_unknown_status_filter(self, db, test_settings, admin_user):
        with pytest.raises(ValidationError):
            WithdrawalService(db, test_settings).list_withdrawals(admin_user, status="lost")

    def test_advisor_for_actor_requires_profile(self, db, test_settings, requester):
        with pytest.raises(ForbiddenError):
            WithdrawalService(db, test_settings).advisor_for_actor(requester)

    def test_advisor_role_without_profile_is_forbidden(self, db, test_settings):
        user = make_user(db, "no-profile@example.com", role=UserRole.ADVISOR.value)

        with pytest.raises(ForbiddenError) as exc:
            WithdrawalService(db, test_settings).advisor_for_actor(user)

        assert exc.value.details["required_capabilities"] == ["is_account_advisor"]


class TestConcurrentWithdrawal:
    """잔액 전액 출금 동시 요청"""

    def test_only_one_full_balance_withdrawal_succeeds(
        self, db, session_factory, test_settings, requester, advisor
    ):
        # Given: 잔액 2500, 같은 금액 동시 요청 6개
        settle(db, requester.id, advisor.id, 2500)
        workers = 6
        barrier = threading.Barrier(workers)
        outcomes = []
        errors = []
        lock = threading.Lock()

        def worker():
            session = session_factory()
            try:
                service = WithdrawalService(session, test_settings)
                barrier.wait()
                try:
                    service.request_withdrawal(advisor.id, 2500)
                    outcome = True
                except InsufficientBalanceError:
                    outcome = False
                with lock:
                    outcomes.append(outcome)
            except Exception as e:  # 스레드 밖으로 전달
                with lock:
                    errors.append(e)
            finally:
                session.close()

        # When
        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        # Then
        assert errors == []
        assert outcomes.count(True) == 1
        assert outcomes.count(False) == workers - 1
        assert db.query(WithdrawalRequest).count() == 1
        assert WithdrawalService(db, test_settings).get_balance(advisor.id) == 0


class TestAdvisorMetrics:
    """상담사 실적 요약"""

    def test_new_advisor(self, db, test_settings, advisor):
        metrics = WithdrawalService(db, test_settings).get_advisor_metrics(advisor.id)

        assert metrics.total_consultations == 0
        assert metrics.completed_consultations == 0
        assert metrics.active_consultations == 0
        assert metrics.status == "new"
        assert metrics.rating_avg == 450

    def test_counts_by_status(self, db, test_settings, requester, advisor):
        # Given
        for status in ["released", "released", "accepted", "payment_reserved",
                       "in_progress", "completed", "cancelled"]:
            make_request(db, requester.id, status=status, advisor_id=advisor.id)
        other = make_consultant(db, name="Other Advisor")
        make_request(db, requester.id, status="released", advisor_id=other.id)

        # When
        metrics = WithdrawalService(db, test_settings).get_advisor_metrics(advisor.id)

        # Then
        assert metrics.advisor_id == advisor.id
        assert metrics.total_consultations == 7
        assert metrics.completed_consultations == 2
        assert metrics.active_consultations == 3
        assert metrics.status == "active"

    def test_active_only_is_active(self, db, test_settings, requester, advisor):
        make_request(db, requester.id, status="accepted", advisor_id=advisor.id)

        metrics = WithdrawalService(db, test_settings).get_advisor_metrics(advisor.id)

        assert metrics.status == "active"

    def test_rating_follows_ratings(self, db, test_settings, requester, advisor):
        request = make_request(db, requester.id, status="released", advisor_id=advisor.id)
        db.add(AdvisorRating(
            request_id=request.id, advisor_id=advisor.id, user_id=requester.id, score=3
        ))
        db.commit()
        ConsultantRepository(db).refresh_rating(advisor.id)
        db.commit()

        metrics = WithdrawalService(db, test_settings).get_advisor_metrics(advisor.id)

        assert metrics.rating_avg == 300
        assert metrics.rating_count == 1

    def test_unknown_advisor(self, db, test_settings):
        with pytest.raises(NotFoundError):
            WithdrawalService(db, test_settings).get_advisor_metrics(999)
