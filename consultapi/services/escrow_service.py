"""
결제 예약(에스크로) / 정산 컨트롤러

accepted -> payment_reserved -> in_progress -> completed -> released

- 결제 예약: pending 주문 생성과 상태 전이를 한 트랜잭션으로 처리
- 세션 시작: 게이트웨이가 주문을 completed로 바꾼 뒤에만 가능
- 정산: completed 상담만. 수수료/지급액을 주문에 1회 기록하고 released로 전이

주문을 completed로 바꾸는 것은 외부 결제 게이트웨이 피드뿐이다.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from consultapi.config import Settings, settings as default_settings
from consultapi.core.capabilities import Capability, authorize
from consultapi.core.exceptions import (
    GatewayNotImplementedError,
    InvalidStateError,
    PaymentNotConfirmedError,
    ValidationError,
)
from consultapi.database.session import transactional
from consultapi.models.consultation import RequestStatus
from consultapi.models.ledger import OrderStatus, ServiceType
from consultapi.repositories.consultant_repository import ConsultantRepository
from consultapi.repositories.consultation_repository import ConsultationRepository
from consultapi.repositories.order_repository import OrderRepository
from consultapi.schemas.consultation import ConsultationRequest
from consultapi.schemas.ledger import Order, ReleaseResponse, ReservationResponse
from consultapi.schemas.user import User
from consultapi.services.pricing import compute_discount, compute_fee_split
from consultapi.services.state_machine import ConsultationStateMachine

logger = logging.getLogger(__name__)

PAYMENT_GATEWAY_NOT_CONNECTED = "PAYMENT_GATEWAY_NOT_CONNECTED"


class EscrowService:
    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings
        self.request_repo = ConsultationRepository(db)
        self.order_repo = OrderRepository(db)
        self.consultant_repo = ConsultantRepository(db)
        self.state_machine = ConsultationStateMachine(db)

    def _require_status(self, request: ConsultationRequest, status: RequestStatus) -> None:
        if request.status != status.value:
            raise InvalidStateError(
                f"Request {request.id} is '{request.status}'",
                current=request.status,
                expected=[status.value],
            )

    def _settled_order(self, request_id: int) -> Order:
        """게이트웨이 확인(completed)된 주문. 없으면 PaymentNotConfirmedError"""
        order = self.order_repo.get_for_request(request_id)
        if order is None or order.status != OrderStatus.COMPLETED.value:
            raise PaymentNotConfirmedError(
                "Payment has not been confirmed by the gateway",
                details={
                    "request_id": request_id,
                    "order_id": order.id if order else None,
                    "order_status": order.status if order else None,
                },
            )
        return order

    def reserve_payment(
        self,
        request_id: int,
        actor: User,
        amount: int,
        currency: Optional[str] = None,
    ) -> ReservationResponse:
        """
        결제 예약 - pending 주문 생성 후 payment_reserved로 전이

        가격이 정해지지 않은 요청은 이 금액으로 가격을 확정한다.
        """
        if amount <= 0:
            raise ValidationError("Amount must be positive", details={"amount": amount})
        currency = currency or self.settings.DEFAULT_CURRENCY

        request = self.state_machine.load(request_id)
        authorize(actor, [Capability.OWNS_REQUEST], request=request)
        self._require_status(request, RequestStatus.ACCEPTED)

        with transactional(self.db):
            request = self.state_machine.load(request_id, lock=True)
            self._require_status(request, RequestStatus.ACCEPTED)

            if request.gross_amount is None:
                discount, net = compute_discount(amount, request.discount_rate_bps)
                self.request_repo.set_pricing(request_id, amount, discount, net, currency)

            order = self.order_repo.create(
                commit=False,
                payer_id=request.user_id,
                advisor_id=request.advisor_id,
                request_id=request_id,
                service_type=ServiceType.CONSULTATION.value,
                status=OrderStatus.PENDING.value,
                gross_amount=amount,
                currency=currency,
            )
            updated = self.state_machine.transition(
                request_id,
                RequestStatus.PAYMENT_RESERVED,
                actor.id,
                expected_from=[RequestStatus.ACCEPTED],
            )

        assert order is not None
        logger.info(
            f"Payment reserved for consultation {request_id}: order={order.id} amount={amount} {currency}"
        )
        return ReservationResponse(request_id=request_id, status=updated.status, order=order)

    def start_session(self, request_id: int, actor: User) -> ConsultationRequest:
        """결제 확인된 상담 시작 (payment_reserved -> in_progress)"""
        request = self.state_machine.load(request_id)
        consultant = self.consultant_repo.get_by_user_id(actor.id)
        authorize(
            actor,
            [Capability.OWNS_REQUEST, Capability.IS_ASSIGNED_ADVISOR, Capability.IS_ADMIN],
            request=request,
            consultant=consultant,
        )
        self._require_status(request, RequestStatus.PAYMENT_RESERVED)
        self._settled_order(request_id)

        with transactional(self.db):
            updated = self.state_machine.transition(
                request_id,
                RequestStatus.IN_PROGRESS,
                actor.id,
                expected_from=[RequestStatus.PAYMENT_RESERVED],
            )
        return updated

    def complete_session(self, request_id: int, actor: User) -> ConsultationRequest:
        """상담 종료 (in_progress -> completed)"""
        request = self.state_machine.load(request_id)
        consultant = self.consultant_repo.get_by_user_id(actor.id)
        authorize(
            actor,
            [Capability.IS_ASSIGNED_ADVISOR, Capability.OWNS_REQUEST, Capability.IS_ADMIN],
            request=request,
            consultant=consultant,
        )
        with transactional(self.db):
            updated = self.state_machine.transition(
                request_id,
                RequestStatus.COMPLETED,
                actor.id,
                expected_from=[RequestStatus.IN_PROGRESS],
            )
        return updated

    def release_payment(
        self,
        request_id: int,
        actor: User,
        platform_fee_bps: Optional[int] = None,
    ) -> ReleaseResponse:
        """
        정산 - 수수료 = 총액 × bps / 10000 (내림), 지급액 = 총액 - 수수료

        이 시점부터 상담사 잔액으로 출금 가능해진다. 재시도하면 InvalidStateError.
        """
        bps = self.settings.PLATFORM_FEE_BPS if platform_fee_bps is None else platform_fee_bps

        request = self.state_machine.load(request_id)
        authorize(
            actor, [Capability.OWNS_REQUEST, Capability.IS_ADMIN], request=request
        )
        self._require_status(request, RequestStatus.COMPLETED)

        with transactional(self.db):
            request = self.state_machine.load(request_id, lock=True)
            self._require_status(request, RequestStatus.COMPLETED)
            order = self._settled_order(request_id)
            fee, payout = compute_fee_split(order.gross_amount, bps)

            if not self.order_repo.attach_settlement(order.id, fee, payout):
                raise InvalidStateError(
                    "Order settlement already recorded",
                    details={"order_id": order.id},
                )
            updated = self.state_machine.transition(
                request_id,
                RequestStatus.RELEASED,
                actor.id,
                expected_from=[RequestStatus.COMPLETED],
            )

        logger.info(
            f"Payment released for consultation {request_id}: gross={order.gross_amount} "
            f"fee={fee} payout={payout} advisor={request.advisor_id}"
        )
        return ReleaseResponse(
            request_id=request_id,
            status=updated.status,
            gross_amount=order.gross_amount,
            platform_fee=fee,
            advisor_payout=payout,
            currency=order.currency,
        )

    def is_payment_completed(self, request_id: int) -> bool:
        order = self.order_repo.get_for_request(request_id)
        return order is not None and order.status == OrderStatus.COMPLETED.value

    def confirm_payment_from_gateway(
        self,
        order_id: int,
        gateway_payment_id: str,
        gateway_reference: str,
        amount: int,
    ) -> Order:
        """게이트웨이 웹훅 연결 지점. 연동 전까지는 항상 실패한다."""
        raise GatewayNotImplementedError(
            PAYMENT_GATEWAY_NOT_CONNECTED, details={"order_id": order_id}
        )
