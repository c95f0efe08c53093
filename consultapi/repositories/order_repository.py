from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from consultapi.models.consultation import (
    ConsultationRequest as ConsultationRequestModel,
    RequestStatus,
)
from consultapi.models.ledger import Order as OrderModel, OrderStatus
from consultapi.repositories.base import BaseRepository
from consultapi.schemas.ledger import Order as OrderSchema


class OrderRepository(BaseRepository[OrderModel, OrderSchema]):
    """
    결제 원장 리포지토리

    정산 금액은 attach_settlement로 한 번만 기록된다. 잔액 계산은 항상
    원장 행을 다시 합산한다.
    """

    def __init__(self, db: Session):
        super().__init__(OrderModel, OrderSchema, db)

    def get_for_request(self, request_id: int) -> Optional[OrderSchema]:
        """요청의 유효한(취소되지 않은) 결제 주문 조회"""
        instance = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.request_id == request_id,
                    self.model_class.status != OrderStatus.CANCELLED.value,
                )
            )
            .order_by(self.model_class.id.desc())
            .populate_existing()
            .first()
        )
        return self._to_schema(instance)

    def mark_completed(
        self, order_id: int, gateway_reference: Optional[str] = None
    ) -> bool:
        """게이트웨이 확인 결과 반영 (pending -> completed)"""
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == order_id,
                    self.model_class.status == OrderStatus.PENDING.value,
                )
            )
            .update(
                {
                    self.model_class.status: OrderStatus.COMPLETED.value,
                    self.model_class.gateway_reference: gateway_reference,
                    self.model_class.completed_at: datetime.now(timezone.utc),
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def attach_settlement(
        self, order_id: int, platform_fee: int, advisor_payout: int
    ) -> bool:
        """
        정산 금액 기록 - platform_fee가 비어 있는 완료 주문에만 1회 적용.

        Returns: 적용 여부 (이미 정산된 주문이면 False)
        """
        updated = (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.id == order_id,
                    self.model_class.status == OrderStatus.COMPLETED.value,
                    self.model_class.platform_fee.is_(None),
                )
            )
            .update(
                {
                    self.model_class.platform_fee: platform_fee,
                    self.model_class.advisor_payout: advisor_payout,
                    self.model_class.net_amount: advisor_payout,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def cancel_pending_for_request(self, request_id: int) -> int:
        """요청의 미결제(pending) 주문 취소"""
        return (
            self.db.query(self.model_class)
            .filter(
                and_(
                    self.model_class.request_id == request_id,
                    self.model_class.status == OrderStatus.PENDING.value,
                )
            )
            .update(
                {self.model_class.status: OrderStatus.CANCELLED.value},
                synchronize_session="fetch",
            )
        )

    def sum_released_payouts(self, advisor_id: int) -> int:
        """정산 완료(released) 요청에 연결된 완료 주문의 상담사 지급액 합계"""
        total = (
            self.db.query(func.coalesce(func.sum(self.model_class.advisor_payout), 0))
            .join(
                ConsultationRequestModel,
                ConsultationRequestModel.id == self.model_class.request_id,
            )
            .filter(
                and_(
                    ConsultationRequestModel.advisor_id == advisor_id,
                    ConsultationRequestModel.status == RequestStatus.RELEASED.value,
                    self.model_class.status == OrderStatus.COMPLETED.value,
                )
            )
            .scalar()
        )
        return int(total or 0)

    def reassign_payer(self, from_user_id: int, to_user_id: int) -> int:
        """결제자 재할당 (계정 익명화)"""
        return (
            self.db.query(self.model_class)
            .filter(self.model_class.payer_id == from_user_id)
            .update(
                {self.model_class.payer_id: to_user_id},
                synchronize_session="fetch",
            )
        )
