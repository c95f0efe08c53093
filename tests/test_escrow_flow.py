import pytest

from consultapi.core.exceptions import (
    ForbiddenError,
    GatewayNotImplementedError,
    InvalidStateError,
    PaymentNotConfirmedError,
    ValidationError,
)
from consultapi.models.consultation import RequestAssignment, RequestTransition
from consultapi.models.ledger import Order
from consultapi.services.consultation_service import ConsultationService
from consultapi.services.escrow_service import EscrowService
from consultapi.services.matching_service import MatchingService
from consultapi.services.withdrawal_service import WithdrawalService
from tests.conftest import confirm_order_externally, make_request


@pytest.fixture
def accepted_request(db, requester, advisor):
    """상담사가 확정된 요청 (가격 미정)"""
    return make_request(
        db,
        requester.id,
        status="accepted",
        advisor_id=advisor.id,
        user_tier_snapshot="pro",
        discount_rate_bps=1000,
    )


class TestEscrowLifecycle:
    """결제 예약부터 정산까지 전체 흐름"""

    def test_full_lifecycle(
        self, db, session_factory, test_settings, requester, advisor_user, advisor
    ):
        # Given: pro 등급 요청 생성 (할인 10%)
        consultations = ConsultationService(db, test_settings)
        created = consultations.create_consultation(
            requester.id, "pro", "Lease contract review", gross_amount=10000
        )
        assert created.status == "pending_advisor"
        assert (created.discount_amount, created.net_amount) == (1000, 9000)

        matching = MatchingService(db)
        matching.match_advisors(created.id, requester)
        offer = db.query(RequestAssignment).filter_by(request_id=created.id).one()
        matching.respond_to_assignment(offer.id, advisor_user, "accept")

        escrow = EscrowService(db, test_settings)

        # When: 결제 예약
        reservation = escrow.reserve_payment(created.id, requester, amount=10000)

        # Then
        assert reservation.status == "payment_reserved"
        assert reservation.order.status == "pending"
        assert reservation.order.payer_id == requester.id
        assert reservation.order.advisor_id == advisor.id
        assert reservation.order.currency == "KWD"

        # 게이트웨이 확인 전에는 시작 불가
        with pytest.raises(PaymentNotConfirmedError) as exc:
            escrow.start_session(created.id, advisor_user)
        assert exc.value.status_code == 402
        assert escrow.is_payment_completed(created.id) is False

        confirm_order_externally(session_factory, created.id)
        assert escrow.is_payment_completed(created.id) is True

        started = escrow.start_session(created.id, advisor_user)
        assert started.status == "in_progress"
        assert started.paid_at is not None

        completed = escrow.complete_session(created.id, advisor_user)
        assert completed.status == "completed"

        release = escrow.release_payment(created.id, requester, platform_fee_bps=3000)

        assert release.status == "released"
        assert (release.gross_amount, release.platform_fee, release.advisor_payout) == (
            10000,
            3000,
            7000,
        )
        order = db.query(Order).filter_by(request_id=created.id).populate_existing().one()
        assert (order.platform_fee, order.advisor_payout) == (3000, 7000)
        assert WithdrawalService(db, test_settings).get_balance(advisor.id) == 7000

        history = [
            (t.from_status, t.to_status)
            for t in db.query(RequestTransition)
            .filter_by(request_id=created.id)
            .order_by(RequestTransition.id)
            .all()
        ]
        assert history == [
            (None, "submitted"),
            ("submitted", "pending_advisor"),
            ("pending_advisor", "accepted"),
            ("accepted", "payment_reserved"),
            ("payment_reserved", "in_progress"),
            ("in_progress", "completed"),
            ("completed", "released"),
        ]


class TestEscrowService:
    """결제 예약/정산 개별 규칙"""

    def test_reserve_prices_unpriced_request(
        self, db, test_settings, requester, accepted_request
    ):
        escrow = EscrowService(db, test_settings)

        escrow.reserve_payment(accepted_request.id, requester, amount=5000, currency="USD")

        request = escrow.state_machine.load(accepted_request.id)
        assert (request.gross_amount, request.discount_amount, request.net_amount) == (
            5000,
            500,
            4500,
        )
        assert request.currency == "USD"
        assert request.awaiting_payment_at is not None

    def test_reserve_requires_owner(self, db, test_settings, advisor_user, accepted_request):
        with pytest.raises(ForbiddenError):
            EscrowService(db, test_settings).reserve_payment(
                accepted_request.id, advisor_user, amount=1000
            )

    def test_reserve_requires_accepted(self, db, test_settings, requester):
        request = make_request(db, requester.id, status="pending_advisor")

        with pytest.raises(InvalidStateError):
            EscrowService(db, test_settings).reserve_payment(request.id, requester, amount=1000)
        assert db.query(Order).count() == 0

    def test_reserve_rejects_non_positive_amount(
        self, db, test_settings, requester, accepted_request
    ):
        with pytest.raises(ValidationError):
            EscrowService(db, test_settings).reserve_payment(
                accepted_request.id, requester, amount=0
            )

    def test_release_before_completion_fails(
        self, db, session_factory, test_settings, requester, advisor_user, accepted_request
    ):
        escrow = EscrowService(db, test_settings)
        escrow.reserve_payment(accepted_request.id, requester, amount=1000)
        confirm_order_externally(session_factory, accepted_request.id)
        escrow.start_session(accepted_request.id, advisor_user)

        with pytest.raises(InvalidStateError):
            escrow.release_payment(accepted_request.id, requester)

        order = db.query(Order).filter_by(request_id=accepted_request.id).one()
        assert order.platform_fee is None

    def test_release_twice_is_rejected(
        self, db, session_factory, test_settings, requester, advisor_user, accepted_request
    ):
        # Given: 정산까지 끝난 요청
        escrow = EscrowService(db, test_settings)
        escrow.reserve_payment(accepted_request.id, requester, amount=2000)
        confirm_order_externally(session_factory, accepted_request.id)
        escrow.start_session(accepted_request.id, requester)
        escrow.complete_session(accepted_request.id, requester)
        first = escrow.release_payment(accepted_request.id, requester)

        # When / Then
        with pytest.raises(InvalidStateError):
            escrow.release_payment(accepted_request.id, requester)

        # 기본 수수료율 30% 적용, 재시도로 바뀌지 않음
        assert (first.platform_fee, first.advisor_payout) == (600, 1400)
        order = db.query(Order).filter_by(request_id=accepted_request.id).populate_existing().one()
        assert (order.platform_fee, order.advisor_payout) == (600, 1400)

    def test_release_requires_owner_or_admin(
        self, db, session_factory, test_settings, requester, advisor_user, admin_user, accepted_request
    ):
        escrow = EscrowService(db, test_settings)
        escrow.reserve_payment(accepted_request.id, requester, amount=1000)
        confirm_order_externally(session_factory, accepted_request.id)
        escrow.start_session(accepted_request.id, advisor_user)
        escrow.complete_session(accepted_request.id, advisor_user)

        with pytest.raises(ForbiddenError):
            escrow.release_payment(accepted_request.id, advisor_user)

        result = escrow.release_payment(accepted_request.id, admin_user)
        assert result.status == "released"

    def test_start_requires_reserved_status(self, db, test_settings, requester, accepted_request):
        with pytest.raises(InvalidStateError):
            EscrowService(db, test_settings).start_session(accepted_request.id, requester)

    def test_complete_requires_in_progress(self, db, test_settings, requester, accepted_request):
        with pytest.raises(InvalidStateError):
            EscrowService(db, test_settings).complete_session(accepted_request.id, requester)

    def test_cancelled_request_cannot_start(
        self, db, session_factory, test_settings, requester, accepted_request
    ):
        escrow = EscrowService(db, test_settings)
        escrow.reserve_payment(accepted_request.id, requester, amount=1000)
        ConsultationService(db, test_settings).cancel_consultation(accepted_request.id, requester)

        with pytest.raises(InvalidStateError):
            escrow.start_session(accepted_request.id, requester)
        assert escrow.is_payment_completed(accepted_request.id) is False

    def test_gateway_confirmation_not_connected(self, db, test_settings):
        with pytest.raises(GatewayNotImplementedError) as exc:
            EscrowService(db, test_settings).confirm_payment_from_gateway(
                order_id=1, gateway_payment_id="pay_1", gateway_reference="ref", amount=1000
            )
        assert exc.value.status_code == 501
        assert exc.value.message == "PAYMENT_GATEWAY_NOT_CONNECTED"

    def test_released_request_cannot_be_cancelled(
        self, db, test_settings, requester
    ):
        request = make_request(db, requester.id, status="released")

        with pytest.raises(InvalidStateError):
            ConsultationService(db, test_settings).cancel_consultation(request.id, requester)
