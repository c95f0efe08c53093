import pytest

from consultapi.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from consultapi.models.consultant import Consultant
from consultapi.models.consultation import RequestAssignment
from consultapi.models.ledger import Order
from consultapi.services.consultation_service import ConsultationService
from consultapi.services.escrow_service import EscrowService
from consultapi.services.matching_service import MatchingService
from tests.conftest import make_request, make_tier_limit, make_user


class TestCreateConsultation:
    """상담 요청 생성 테스트"""

    def test_snapshot_and_pricing_for_pro_tier(self, db, test_settings, requester):
        # When
        created = ConsultationService(db, test_settings).create_consultation(
            requester.id,
            "pro",
            "  Employment contract  ",
            files=[{"file_id": "f-1", "name": "contract.pdf"}],
            gross_amount=10000,
        )

        # Then
        assert created.status == "pending_advisor"
        assert created.user_tier_snapshot == "pro"
        assert created.priority_weight == 10
        assert created.discount_rate_bps == 1000
        assert (created.gross_amount, created.discount_amount, created.net_amount) == (
            10000,
            1000,
            9000,
        )
        assert created.currency == "KWD"
        assert created.summary == "Employment contract"
        assert [f.file_id for f in created.files] == ["f-1"]

    def test_snapshot_survives_tier_change(self, db, test_settings, requester):
        service = ConsultationService(db, test_settings)
        created = service.create_consultation(requester.id, "free", "Question", gross_amount=999)

        make_tier_limit(db, "free", discount_rate_bps=5000, priority_weight=3)

        loaded = service.get_consultation(created.id, requester)
        assert (loaded.discount_rate_bps, loaded.priority_weight) == (0, 0)
        assert loaded.net_amount == 999

    def test_unpriced_request(self, db, test_settings, requester):
        created = ConsultationService(db, test_settings).create_consultation(
            requester.id, "free", "Question"
        )

        assert created.gross_amount is None
        assert created.net_amount is None

    def test_empty_summary_rejected(self, db, test_settings, requester):
        with pytest.raises(ValidationError):
            ConsultationService(db, test_settings).create_consultation(requester.id, "free", "   ")

    def test_draft_then_submit(self, db, test_settings, requester):
        service = ConsultationService(db, test_settings)
        draft = service.create_consultation(requester.id, "free", "Draft", as_draft=True)
        assert draft.status == "draft"

        submitted = service.submit_draft(draft.id, requester)

        assert submitted.status == "pending_advisor"
        history = service.get_transition_history(draft.id, requester)
        assert [(h.from_status, h.to_status) for h in history] == [
            (None, "draft"),
            ("draft", "submitted"),
            ("submitted", "pending_advisor"),
        ]

    def test_submit_non_draft_rejected(self, db, test_settings, requester):
        request = make_request(db, requester.id, status="pending_advisor")

        with pytest.raises(InvalidStateError):
            ConsultationService(db, test_settings).submit_draft(request.id, requester)


class TestReadAccess:
    def test_stranger_cannot_read(self, db, test_settings, requester):
        stranger = make_user(db, "stranger@example.com")
        request = make_request(db, requester.id)

        with pytest.raises(ForbiddenError):
            ConsultationService(db, test_settings).get_consultation(request.id, stranger)

    def test_offered_advisor_and_admin_can_read(
        self, db, test_settings, requester, advisor_user, advisor, admin_user
    ):
        request = make_request(db, requester.id)
        MatchingService(db).match_advisors(request.id, requester)
        service = ConsultationService(db, test_settings)

        assert service.get_consultation(request.id, advisor_user).id == request.id
        assert service.get_consultation(request.id, admin_user).id == request.id

    def test_missing_request(self, db, test_settings, requester):
        with pytest.raises(NotFoundError):
            ConsultationService(db, test_settings).get_consultation(12345, requester)

    def test_list_only_own_requests(self, db, test_settings, requester):
        other = make_user(db, "other@example.com")
        mine = make_request(db, requester.id)
        make_request(db, other.id)

        listed = ConsultationService(db, test_settings).list_consultations_for_user(requester)

        assert [r.id for r in listed] == [mine.id]


class TestCancelConsultation:
    def test_cancel_voids_pending_order_and_offers(
        self, db, test_settings, requester, advisor_user, advisor
    ):
        # Given: 결제 예약까지 진행된 요청
        service = ConsultationService(db, test_settings)
        created = service.create_consultation(requester.id, "pro", "Q", gross_amount=1000)
        matching = MatchingService(db)
        matching.match_advisors(created.id, requester)
        offer = db.query(RequestAssignment).filter_by(request_id=created.id).one()
        matching.respond_to_assignment(offer.id, advisor_user, "accept")
        EscrowService(db, test_settings).reserve_payment(created.id, requester, amount=1000)

        # When
        cancelled = service.cancel_consultation(created.id, requester, reason="changed mind")

        # Then
        assert cancelled.status == "cancelled"
        assert cancelled.closed_at is not None
        order = db.query(Order).filter_by(request_id=created.id).populate_existing().one()
        assert order.status == "cancelled"

    def test_cancel_expires_open_offers(self, db, test_settings, requester, advisor):
        request = make_request(db, requester.id)
        MatchingService(db).match_advisors(request.id, requester)

        ConsultationService(db, test_settings).cancel_consultation(request.id, requester)

        offer = (
            db.query(RequestAssignment)
            .filter_by(request_id=request.id)
            .populate_existing()
            .one()
        )
        assert offer.status == "expired"

    def test_only_owner_or_admin_cancels(
        self, db, test_settings, requester, advisor_user, admin_user
    ):
        service = ConsultationService(db, test_settings)
        request = make_request(db, requester.id)

        with pytest.raises(ForbiddenError):
            service.cancel_consultation(request.id, advisor_user)

        assert service.cancel_consultation(request.id, admin_user).status == "cancelled"

    def test_completed_request_cannot_be_cancelled(self, db, test_settings, requester):
        request = make_request(db, requester.id, status="completed")

        with pytest.raises(InvalidStateError):
            ConsultationService(db, test_settings).cancel_consultation(request.id, requester)


class TestRateAdvisor:
    def test_rating_updates_advisor_average(self, db, test_settings, requester, advisor):
        service = ConsultationService(db, test_settings)
        first = make_request(db, requester.id, status="released", advisor_id=advisor.id)
        second = make_request(db, requester.id, status="released", advisor_id=advisor.id)

        service.rate_advisor(first.id, requester, 5, comment="great")
        rating = service.rate_advisor(second.id, requester, 4)

        assert rating.advisor_id == advisor.id
        consultant = db.query(Consultant).filter_by(id=advisor.id).populate_existing().one()
        assert (consultant.rating_avg, consultant.rating_count) == (450, 2)
        assert service.get_consultation(second.id, requester).rated_at is not None

    def test_rating_only_once(self, db, test_settings, requester, advisor):
        service = ConsultationService(db, test_settings)
        request = make_request(db, requester.id, status="released", advisor_id=advisor.id)
        service.rate_advisor(request.id, requester, 3)

        with pytest.raises(InvalidStateError):
            service.rate_advisor(request.id, requester, 5)

    def test_rating_requires_release(self, db, test_settings, requester, advisor):
        request = make_request(db, requester.id, status="completed", advisor_id=advisor.id)

        with pytest.raises(InvalidStateError):
            ConsultationService(db, test_settings).rate_advisor(request.id, requester, 5)

    @pytest.mark.parametrize("score", [0, 6])
    def test_score_range(self, db, test_settings, requester, advisor, score):
        request = make_request(db, requester.id, status="released", advisor_id=advisor.id)

        with pytest.raises(ValidationError):
            ConsultationService(db, test_settings).rate_advisor(request.id, requester, score)
