"""
상담 요청 생성 및 수명주기 보조 연산

- 생성: 등급 스냅샷(우선순위 가중치, 할인율)과 금액 계산 후 submitted로 저장하고
  같은 트랜잭션에서 pending_advisor로 전이
- 초안 제출, 조회, 취소, 평가
"""

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from consultapi.config import Settings, settings as default_settings
from consultapi.core.capabilities import Capability, authorize
from consultapi.core.exceptions import InvalidStateError, ValidationError
from consultapi.database.session import transactional
from consultapi.models.consultation import RequestStatus
from consultapi.repositories.consultant_repository import ConsultantRepository
from consultapi.repositories.consultation_repository import (
    AssignmentRepository,
    ConsultationRepository,
    RatingRepository,
    TransitionRepository,
)
from consultapi.repositories.order_repository import OrderRepository
from consultapi.schemas.consultant import Consultant
from consultapi.schemas.consultation import (
    AdvisorRating,
    ConsultationRequest,
    FileReference,
    RequestTransition,
)
from consultapi.schemas.user import User
from consultapi.services.pricing import compute_discount
from consultapi.services.state_machine import ConsultationStateMachine
from consultapi.services.tier_service import TierService

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (
    RequestStatus.PENDING_ADVISOR,
    RequestStatus.ACCEPTED,
    RequestStatus.PAYMENT_RESERVED,
    RequestStatus.IN_PROGRESS,
)

READ_CAPABILITIES = (
    Capability.OWNS_REQUEST,
    Capability.IS_ASSIGNED_ADVISOR,
    Capability.IS_OFFERED_ADVISOR,
    Capability.IS_ADMIN,
)


class ConsultationService:
    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        tier_service: Optional[TierService] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.tier_service = tier_service or TierService(db, self.settings)
        self.request_repo = ConsultationRepository(db)
        self.assignment_repo = AssignmentRepository(db)
        self.transition_repo = TransitionRepository(db)
        self.rating_repo = RatingRepository(db)
        self.order_repo = OrderRepository(db)
        self.consultant_repo = ConsultantRepository(db)
        self.state_machine = ConsultationStateMachine(db)

    def _actor_consultant(self, actor: User) -> Optional[Consultant]:
        return self.consultant_repo.get_by_user_id(actor.id)

    def _authorize_read(self, actor: User, request: ConsultationRequest) -> None:
        consultant = self._actor_consultant(actor)
        assignment = None
        if consultant is not None:
            assignment = next(
                (
                    a
                    for a in self.assignment_repo.list_for_request(request.id)
                    if a.advisor_id == consultant.id
                ),
                None,
            )
        authorize(
            actor,
            READ_CAPABILITIES,
            request=request,
            assignment=assignment,
            consultant=consultant,
        )

    @staticmethod
    def _normalize_files(files: Optional[Iterable[Any]]) -> Optional[List[dict]]:
        if not files:
            return None
        return [FileReference.model_validate(f).model_dump() for f in files]

    def create_consultation(
        self,
        user_id: int,
        tier: str,
        summary: str,
        files: Optional[Iterable[Any]] = None,
        gross_amount: Optional[int] = None,
        as_draft: bool = False,
    ) -> ConsultationRequest:
        """
        상담 요청 생성

        Args:
            user_id: 요청자
            tier: 요청 시점의 구독 등급 (스냅샷으로 저장)
            gross_amount: 가격 (fils). 없으면 결제 예약 시 확정
            as_draft: True면 draft 상태로 저장

        Returns:
            ConsultationRequest: pending_advisor (초안이면 draft) 상태의 요청
        """
        if not summary or not summary.strip():
            raise ValidationError("Summary must not be empty")

        limits = self.tier_service.get_tier_limit(tier)
        pricing = {}
        if gross_amount is not None:
            discount, net = compute_discount(gross_amount, limits.discount_rate_bps)
            pricing = {
                "gross_amount": gross_amount,
                "discount_amount": discount,
                "net_amount": net,
                "currency": self.settings.DEFAULT_CURRENCY,
            }

        initial = RequestStatus.DRAFT if as_draft else RequestStatus.SUBMITTED
        with transactional(self.db):
            created = self.request_repo.create(
                commit=False,
                user_id=user_id,
                user_tier_snapshot=tier,
                priority_weight=limits.priority_weight,
                discount_rate_bps=limits.discount_rate_bps,
                status=initial.value,
                summary=summary.strip(),
                files=self._normalize_files(files),
                **pricing,
            )
            assert created is not None
            self.state_machine.record_creation(created.id, initial.value, user_id)
            if not as_draft:
                created = self.state_machine.transition(
                    created.id, RequestStatus.PENDING_ADVISOR, user_id
                )

        logger.info(
            f"Consultation {created.id} created by user {user_id} "
            f"(tier={tier}, status={created.status}, net={created.net_amount})"
        )
        return created

    def submit_draft(self, request_id: int, actor: User) -> ConsultationRequest:
        """초안 제출: draft -> submitted -> pending_advisor"""
        request = self.state_machine.load(request_id)
        authorize(actor, [Capability.OWNS_REQUEST], request=request)
        with transactional(self.db):
            self.state_machine.transition(
                request_id,
                RequestStatus.SUBMITTED,
                actor.id,
                expected_from=[RequestStatus.DRAFT],
            )
            result = self.state_machine.transition(
                request_id, RequestStatus.PENDING_ADVISOR, actor.id
            )
        return result

    def get_consultation(self, request_id: int, actor: User) -> ConsultationRequest:
        request = self.state_machine.load(request_id)
        self._authorize_read(actor, request)
        return request

    def list_consultations_for_user(
        self, actor: User, limit: int = 50, offset: int = 0
    ) -> List[ConsultationRequest]:
        return self.request_repo.list_for_user(actor.id, limit=limit, offset=offset)

    def get_transition_history(
        self, request_id: int, actor: User
    ) -> List[RequestTransition]:
        request = self.state_machine.load(request_id)
        self._authorize_read(actor, request)
        return self.transition_repo.list_for_request(request_id)

    def cancel_consultation(
        self, request_id: int, actor: User, reason: Optional[str] = None
    ) -> ConsultationRequest:
        """
        요청 취소 - 미결제 주문은 cancelled, 남은 배정 제안은 expired.
        결제 완료 주문은 그대로 둔다 (환불은 외부 처리).
        """
        request = self.state_machine.load(request_id)
        authorize(
            actor, [Capability.OWNS_REQUEST, Capability.IS_ADMIN], request=request
        )
        with transactional(self.db):
            result = self.state_machine.transition(
                request_id,
                RequestStatus.CANCELLED,
                actor.id,
                expected_from=CANCELLABLE_STATUSES,
            )
            cancelled_orders = self.order_repo.cancel_pending_for_request(request_id)
            self.assignment_repo.expire_open_offers(request_id)

        logger.info(
            f"Consultation {request_id} cancelled by {actor.id} "
            f"(orders_cancelled={cancelled_orders}, reason={reason!r})"
        )
        return result

    def rate_advisor(
        self,
        request_id: int,
        actor: User,
        score: int,
        comment: Optional[str] = None,
    ) -> AdvisorRating:
        """정산 완료(released)된 상담에 대해 요청당 1회 평가"""
        if not 1 <= score <= 5:
            raise ValidationError("Score must be between 1 and 5", details={"score": score})

        request = self.state_machine.load(request_id)
        authorize(actor, [Capability.OWNS_REQUEST], request=request)
        if request.status != RequestStatus.RELEASED.value:
            raise InvalidStateError(
                "Only released consultations can be rated",
                current=request.status,
                expected=[RequestStatus.RELEASED.value],
            )
        if request.advisor_id is None:
            raise InvalidStateError("Consultation has no advisor", current=request.status)
        if self.rating_repo.get_for_request(request_id) is not None:
            raise InvalidStateError(
                "Consultation already rated", current=request.status
            )

        with transactional(self.db):
            rating = self.rating_repo.create(
                commit=False,
                request_id=request_id,
                advisor_id=request.advisor_id,
                user_id=actor.id,
                score=score,
                comment=comment,
            )
            self.request_repo.set_milestone(request_id, "rated_at")
            self.consultant_repo.refresh_rating(request.advisor_id)

        assert rating is not None
        logger.info(f"Consultation {request_id} rated {score} by user {actor.id}")
        return rating
