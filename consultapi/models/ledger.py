"""
결제 원장(Order) 데이터 모델

주문 한 건이 원장 항목 한 건이다. 정산 금액(platform_fee, advisor_payout)은
한 번 기록되면 수정하지 않으며, 상담사 잔액은 항상 이 테이블에서 다시 계산한다.
금액은 모두 fils 단위 정수.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from consultapi.models.base import BaseModel, BigIntPK


class OrderStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ServiceType(str, Enum):
    CONSULTATION = "consultation"
    SUBSCRIPTION = "subscription"
    PAYOUT = "payout"
    WITHDRAWAL = "withdrawal"


class Order(BaseModel):
    __tablename__ = "orders"
    __table_args__ = (
        Index("idx_orders_request", "request_id"),
        Index("idx_orders_advisor_status", "advisor_id", "status"),
        Index("idx_orders_payer", "payer_id"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    # 계정 삭제 후에는 익명 결제자(sentinel) 계정을 가리킨다
    payer_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    advisor_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("consultants.id"), nullable=True
    )
    request_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("consultation_requests.id"), nullable=True
    )
    service_type: Mapped[str] = mapped_column(
        String(20), default=ServiceType.CONSULTATION.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=OrderStatus.PENDING.value, nullable=False
    )
    gross_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_amount: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    # 정산 시 1회 기록
    platform_fee: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    advisor_payout: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="KWD", nullable=False)
    gateway_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<Order(id={self.id}, request_id={self.request_id}, status={self.status}, gross={self.gross_amount})>"
