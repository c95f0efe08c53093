"""
상담 요청 데이터 모델

- consultation_requests: 상담 요청 본체. 상태는 상태 머신만 변경한다.
- request_assignments: 매칭 엔진이 만든 상담사 후보 목록
- request_transitions: 상태 전이 감사 로그 (append-only)
- advisor_ratings: 정산 완료된 상담에 대한 평가 (요청당 1건)
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from consultapi.models.base import Base, BaseModel, BigIntPK


class RequestStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_ADVISOR = "pending_advisor"
    ACCEPTED = "accepted"
    PAYMENT_RESERVED = "payment_reserved"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    RELEASED = "released"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class AssignmentStatus(str, Enum):
    OFFERED = "offered"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class ConsultationRequest(BaseModel):
    __tablename__ = "consultation_requests"
    __table_args__ = (
        Index("idx_consultation_requests_user", "user_id"),
        Index("idx_consultation_requests_advisor_status", "advisor_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    # 요청자는 생성 후 변경되지 않음
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    advisor_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("consultants.id"), nullable=True
    )

    # 생성 시점의 등급 스냅샷 (이후 등급이 바뀌어도 재계산하지 않음)
    user_tier_snapshot: Mapped[str] = mapped_column(String(20), nullable=False)
    priority_weight: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount_rate_bps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # 금액 (fils 단위 정수). 가격이 정해지기 전에는 NULL
    gross_amount: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    discount_amount: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    net_amount: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)

    status: Mapped[str] = mapped_column(
        String(30), default=RequestStatus.SUBMITTED.value, nullable=False
    )
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    # [{"file_id": ..., "name": ...}] 외부 저장소 참조만 보관
    files: Mapped[Optional[List[dict]]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )

    # 마일스톤 타임스탬프 (최초 진입 시 1회만 기록)
    awaiting_payment_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<ConsultationRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"


class RequestAssignment(BaseModel):
    __tablename__ = "request_assignments"
    __table_args__ = (
        UniqueConstraint("request_id", "advisor_id", name="uq_assignment_request_advisor"),
        Index("idx_request_assignments_advisor", "advisor_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consultation_requests.id"), nullable=False
    )
    advisor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consultants.id"), nullable=False
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AssignmentStatus.OFFERED.value, nullable=False
    )
    responded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class RequestTransition(Base):
    """상태 전이 감사 로그 - 수정/삭제 없음"""

    __tablename__ = "request_transitions"
    __table_args__ = (Index("idx_request_transitions_request", "request_id"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consultation_requests.id"), nullable=False
    )
    # 생성 행은 from_status가 NULL
    from_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    actor_user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class AdvisorRating(BaseModel):
    __tablename__ = "advisor_ratings"
    __table_args__ = (
        UniqueConstraint("request_id", name="uq_advisor_ratings_request"),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_advisor_ratings_score"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consultation_requests.id"), nullable=False
    )
    advisor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consultants.id"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
