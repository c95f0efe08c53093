"""
사용량 카운터 / 등급별 한도 테이블

usage_counters는 (user_id, usage_date) 당 한 행이며 값은 증가만 한다.
행은 첫 사용 시점에 지연 생성된다. usage_date는 UTC 기준 날짜.
"""

from datetime import date
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import UniqueConstraint

from consultapi.models.base import BaseModel, BigIntPK


class ContractAccessLevel(str, Enum):
    LOCKED = "locked"
    PARTIAL = "partial"
    FULL = "full"


class UsageCounter(BaseModel):
    __tablename__ = "usage_counters"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id"), primary_key=True
    )
    usage_date: Mapped[date] = mapped_column(Date, primary_key=True)
    general_chat_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    advisor_chat_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class TierLimit(BaseModel):
    __tablename__ = "tier_limits"
    __table_args__ = (UniqueConstraint("tier", name="uq_tier_limits_tier"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    # NULL = 무제한
    general_chat_daily_limit: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    advisor_chat_daily_limit: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True
    )
    contract_access_level: Mapped[str] = mapped_column(
        String(20), default=ContractAccessLevel.LOCKED.value, nullable=False
    )
    discount_rate_bps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    priority_weight: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
