from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from consultapi.models.base import BaseModel, BigIntPK


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# 잔액에서 차감(예약)되는 상태
RESERVED_WITHDRAWAL_STATUSES = (
    WithdrawalStatus.PENDING.value,
    WithdrawalStatus.APPROVED.value,
    WithdrawalStatus.PROCESSING.value,
)


class WithdrawalRequest(BaseModel):
    __tablename__ = "withdrawal_requests"
    __table_args__ = (Index("idx_withdrawal_requests_advisor", "advisor_id", "status"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    advisor_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("consultants.id"), nullable=False
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=WithdrawalStatus.PENDING.value, nullable=False
    )
    bank_details: Mapped[Optional[dict]] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    approved_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejected_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
